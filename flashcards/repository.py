"""
flashcards.repository
---------------------

This module defines the storage collaborator a review session talks to.

The scheduler itself is storage-agnostic. A Session only needs an object implementing
the CardRepository protocol; InMemoryCardRepository is a small reference implementation.

Classes:
    CardFilter: Criteria for selecting due cards.
    CardRepository: Protocol of the storage collaborator.
    InMemoryCardRepository: Dictionary-backed CardRepository.
"""

from __future__ import annotations
from collections.abc import Iterable
from copy import copy
from dataclasses import dataclass
from datetime import date, datetime, timezone
import logging
from typing import Protocol
from flashcards.card import CardState
from flashcards.review_log import ReviewLog
from flashcards.state import State

logger = logging.getLogger(__name__)

# order in which due cards are returned, ties broken by due date
STATE_PRIORITY = {
    State.Learning: 0,
    State.Relearning: 1,
    State.New: 2,
    State.Review: 3,
}


@dataclass(frozen=True)
class CardFilter:
    """
    Criteria for selecting due cards.

    Attributes:
        tag: Only cards tagged with this tag or one of its sub-tags (e.g. "math" matches "math/calculus").
        state: Only cards in this state.
        limit: Maximum number of cards to return.
        now: The date and time cards must be due by. Defaults to the current UTC time.
    """

    tag: str | None = None
    state: State | None = None
    limit: int | None = None
    now: datetime | None = None


class CardRepository(Protocol):
    """
    Storage collaborator of a review session.

    Implementations may raise their own exceptions; a Session propagates them unchanged.
    """

    def get_due_cards(self, card_filter: CardFilter) -> list[CardState]: ...

    def get_new_done_today(self, day: date) -> int: ...

    def persist_state(self, card_id: int, state: CardState) -> None: ...

    def append_review(self, record: ReviewLog) -> None: ...


def tag_matches(tag: str, wanted: str) -> bool:
    return tag == wanted or tag.startswith(wanted + "/")


class InMemoryCardRepository:
    """
    A CardRepository keeping card states, tags and review records in memory.
    """

    def __init__(self) -> None:
        self._cards: dict[int, CardState] = {}
        self._tags: dict[int, set[str]] = {}
        self._reviews: list[ReviewLog] = []

    def __len__(self) -> int:
        return len(self._cards)

    def add_card(self, card: CardState, tags: Iterable[str] = ()) -> None:
        self._cards[card.card_id] = copy(card)
        self._tags[card.card_id] = set(tags)

    def get_card(self, card_id: int) -> CardState:
        """
        Returns a copy of the stored state of a card.

        Raises:
            KeyError: If no card with this id is stored.
        """

        return copy(self._cards[card_id])

    def get_tags(self, card_id: int) -> set[str]:
        return set(self._tags.get(card_id, ()))

    def get_due_cards(self, card_filter: CardFilter | None = None) -> list[CardState]:
        if card_filter is None:
            card_filter = CardFilter()

        now = card_filter.now or datetime.now(timezone.utc)

        due_cards = []
        for card_id, card in self._cards.items():
            if not card.is_due(now):
                continue
            if card_filter.state is not None and card.state != card_filter.state:
                continue
            if card_filter.tag is not None and not any(
                tag_matches(tag, card_filter.tag) for tag in self._tags[card_id]
            ):
                continue
            due_cards.append(copy(card))

        due_cards.sort(key=lambda card: (STATE_PRIORITY[card.state], card.due_date))

        if card_filter.limit is not None:
            due_cards = due_cards[: card_filter.limit]

        return due_cards

    def get_new_done_today(self, day: date) -> int:
        return sum(
            1
            for record in self._reviews
            if record.state_before == State.New
            and record.review_datetime.astimezone(timezone.utc).date() == day
        )

    def persist_state(self, card_id: int, state: CardState) -> None:
        if card_id not in self._cards:
            raise KeyError(card_id)
        self._cards[card_id] = copy(state)
        logger.debug("persisted card %s in state %s", card_id, state.state.name)

    def append_review(self, record: ReviewLog) -> None:
        self._reviews.append(record)

    def get_reviews(self, card_id: int | None = None) -> list[ReviewLog]:
        if card_id is None:
            return list(self._reviews)
        return [record for record in self._reviews if record.card_id == card_id]


__all__ = ["CardFilter", "CardRepository", "InMemoryCardRepository"]
