"""
flashcards.review_queue
-----------------------

This module builds the ordered review queue of a session and defines the work queue
the session draws cards from.

Classes:
    QueueCounts: Bucket sizes recorded while building a queue.
    ReviewQueue: Work queue separating unseen cards from same-session revisits.

Functions:
    build_queue: Partition, cap and interleave a set of due cards.
"""

from __future__ import annotations
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from random import Random
from flashcards.card import CardState
from flashcards.state import State

DEFAULT_REVIEW_PROBABILITY = 0.7


@dataclass(frozen=True)
class QueueCounts:
    new: int
    learning: int
    review: int

    @property
    def total(self) -> int:
        return self.new + self.learning + self.review


def build_queue(
    due_cards: Iterable[CardState],
    new_daily_cap: int | None,
    new_done_today: int,
    rng: Random,
    review_probability: float = DEFAULT_REVIEW_PROBABILITY,
) -> tuple[list[CardState], QueueCounts]:
    """
    Orders a set of due cards for a review session.

    Learning and Relearning cards come first since they need frequent revisits. New
    cards are capped to what is left of the daily allowance, then interleaved with
    Review cards: while both buckets have cards, a Review card is drawn with
    probability `review_probability`. Order within each bucket is preserved.

    Args:
        due_cards: The cards due for review, in the repository's order.
        new_daily_cap: Maximum number of new cards per day, or None for no limit.
        new_done_today: Number of new cards already introduced today.
        rng: Random source for the interleaving draws.
        review_probability: Probability of drawing a Review card when both buckets are non-empty.

    Returns:
        tuple[list[CardState], QueueCounts]: The ordered queue and its bucket sizes.
    """

    new_cards = []
    learning_cards = []
    review_cards = []

    for card in due_cards:
        if card.state == State.New:
            new_cards.append(card)
        elif card.state.is_learning:
            learning_cards.append(card)
        else:
            review_cards.append(card)

    if new_daily_cap is not None:
        remaining_new = max(0, new_daily_cap - new_done_today)
        new_cards = new_cards[:remaining_new]

    counts = QueueCounts(
        new=len(new_cards), learning=len(learning_cards), review=len(review_cards)
    )

    queue = list(learning_cards)

    new_idx, review_idx = 0, 0
    while new_idx < len(new_cards) or review_idx < len(review_cards):
        has_new = new_idx < len(new_cards)
        has_review = review_idx < len(review_cards)

        if has_review and (not has_new or rng.random() < review_probability):
            queue.append(review_cards[review_idx])
            review_idx += 1
        else:
            queue.append(new_cards[new_idx])
            new_idx += 1

    return queue, counts


class ReviewQueue:
    """
    Cards waiting to be shown in a session.

    Cards that were never shown are kept apart from cards that need another pass in
    the same session (re-enqueued learning cards and skipped cards). Unseen cards are
    always drawn first, so the revisit lane behaves as the tail of the queue.
    """

    def __init__(self, cards: Iterable[CardState] = ()) -> None:
        self._fresh: deque[CardState] = deque(cards)
        self._revisits: deque[CardState] = deque()

    def __len__(self) -> int:
        return len(self._fresh) + len(self._revisits)

    def __bool__(self) -> bool:
        return len(self) > 0

    def __iter__(self) -> Iterator[CardState]:
        yield from self._fresh
        yield from self._revisits

    def popleft(self) -> CardState:
        if self._fresh:
            return self._fresh.popleft()
        if self._revisits:
            return self._revisits.popleft()
        raise IndexError("pop from an empty ReviewQueue")

    def push_revisit(self, card: CardState) -> None:
        self._revisits.append(card)

    def discard_revisits(self, card: CardState) -> int:
        """
        Removes every pending revisit of this exact CardState object.

        Cards are matched by identity, not by id, so older or newer states of the same
        card stay in the queue.

        Returns:
            The number of revisits removed.
        """

        kept = deque(pending for pending in self._revisits if pending is not card)
        removed = len(self._revisits) - len(kept)
        self._revisits = kept
        return removed


__all__ = ["QueueCounts", "ReviewQueue", "build_queue"]
