"""
flashcards.session
------------------

This module defines the Session class, which steps a user through the cards due for review.

Classes:
    Session: A single review sitting.
    SessionStats: Running counts of a session.
    SessionSummary: Snapshot of a session's statistics.
    UndoEntry: What is needed to revert one answer.
"""

from __future__ import annotations
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
import logging
from random import Random
from typing_extensions import Self
from flashcards.card import CardState
from flashcards.errors import EmptyQueueError, NothingToUndoError
from flashcards.interval import IntervalResult
from flashcards.rating import Rating
from flashcards.repository import CardFilter, CardRepository
from flashcards.review_log import ReviewLog
from flashcards.review_queue import DEFAULT_REVIEW_PROBABILITY, ReviewQueue, build_queue
from flashcards.scheduler import Scheduler

logger = logging.getLogger(__name__)

DEFAULT_NEW_CARDS_PER_DAY = 20

# learning cards due sooner than this come back later in the same session
REVISIT_WINDOW = timedelta(minutes=30)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SessionStats:
    """
    Running counts of a session.

    Attributes:
        total: Number of cards in the queue when the session was built.
        new: Number of New cards in the queue when the session was built.
        learning: Number of Learning and Relearning cards in the queue when the session was built.
        review: Number of Review cards in the queue when the session was built.
        wrong: Number of Wrong answers given so far.
        correct: Number of Correct answers given so far.
    """

    total: int = 0
    new: int = 0
    learning: int = 0
    review: int = 0
    wrong: int = 0
    correct: int = 0


@dataclass(frozen=True)
class SessionSummary:
    total_cards: int
    reviewed: int
    remaining: int
    new: int
    learning: int
    review: int
    wrong: int
    correct: int
    elapsed_seconds: float
    avg_seconds: float
    retention_rate: float


@dataclass(frozen=True)
class UndoEntry:
    """
    Attributes:
        card_id: The id of the answered card.
        prior_state: The card's state before it was answered.
        answered_state: The state the answer produced. The session shows and queues this
            exact object, so every copy of it can be found by identity.
        rating: The rating that was given.
        requeued: Whether the answer put the card back in the queue for a revisit.
    """

    card_id: int
    prior_state: CardState
    answered_state: CardState
    rating: Rating
    requeued: bool = False


class Session:
    """
    A single review sitting.

    Builds the review queue from the due cards, hands out one card at a time, delegates
    scheduling to a Scheduler and reports each answer to the repository. Session objects
    are not persisted; only card states and review records are.

    A Session is meant for single-threaded use: calls to next(), answer(), undo() and
    skip() on the same instance must not overlap.

    Attributes:
        scheduler: The scheduler computing new card states.
        repository: The storage collaborator, or None to keep everything in memory.
        stats: Running counts of the session.
        reviews: Review records produced in this session, oldest first.
        start_time: When the session was created.
        card_start_time: When the current card was shown, or None if no card is shown.
    """

    def __init__(
        self,
        due_cards: Iterable[CardState],
        new_daily_cap: int | None = None,
        new_done_today: int = 0,
        *,
        scheduler: Scheduler | None = None,
        repository: CardRepository | None = None,
        rng: Random | None = None,
        clock: Callable[[], datetime] | None = None,
        review_probability: float = DEFAULT_REVIEW_PROBABILITY,
    ) -> None:
        if rng is None:
            rng = Random()
        if scheduler is None:
            scheduler = Scheduler(rng=rng)

        self.scheduler = scheduler
        self.repository = repository
        self._clock = clock or _utc_now

        cards, counts = build_queue(
            due_cards,
            new_daily_cap=new_daily_cap,
            new_done_today=new_done_today,
            rng=rng,
            review_probability=review_probability,
        )

        self._queue = ReviewQueue(cards)
        self._presented: list[CardState] = []
        self._cursor = -1
        self._undo_stack: list[UndoEntry] = []

        self.stats = SessionStats(
            total=counts.total,
            new=counts.new,
            learning=counts.learning,
            review=counts.review,
        )
        self.reviews: list[ReviewLog] = []
        self.start_time = self._clock()
        self.card_start_time: datetime | None = None

        logger.info(
            "review session built with %d cards (%d learning, %d new, %d review)",
            counts.total,
            counts.learning,
            counts.new,
            counts.review,
        )

    @classmethod
    def from_repository(
        cls,
        repository: CardRepository,
        card_filter: CardFilter | None = None,
        new_daily_cap: int | None = DEFAULT_NEW_CARDS_PER_DAY,
        *,
        scheduler: Scheduler | None = None,
        rng: Random | None = None,
        clock: Callable[[], datetime] | None = None,
        review_probability: float = DEFAULT_REVIEW_PROBABILITY,
    ) -> Self:
        """
        Creates a Session from the cards a repository reports as due.

        Args:
            repository: The storage collaborator to load cards from and report answers to.
            card_filter: Criteria for selecting due cards. Cards must be due by the session's start time unless the filter says otherwise.
            new_daily_cap: Maximum number of new cards per day, or None for no limit.
            scheduler: The scheduler to use. Defaults to one with default parameters.
            rng: Random source for queue interleaving and fuzzing.
            clock: Returns the current UTC date and time.
            review_probability: Probability of drawing a Review card over a New card while building the queue.

        Returns:
            Self: A Session ready for its first call to next().
        """

        now = (clock or _utc_now)()

        if card_filter is None:
            card_filter = CardFilter(now=now)
        elif card_filter.now is None:
            card_filter = replace(card_filter, now=now)

        due_cards = repository.get_due_cards(card_filter)
        new_done_today = repository.get_new_done_today(now.date())

        return cls(
            due_cards,
            new_daily_cap=new_daily_cap,
            new_done_today=new_done_today,
            scheduler=scheduler,
            repository=repository,
            rng=rng,
            clock=clock,
            review_probability=review_probability,
        )

    def current(self) -> CardState | None:
        if 0 <= self._cursor < len(self._presented):
            return self._presented[self._cursor]
        return None

    def next(self) -> CardState | None:
        """
        Moves to the next card.

        Returns:
            The card now shown, or None if the session is complete.
        """

        self._cursor = min(self._cursor + 1, len(self._presented))

        if self._cursor == len(self._presented):
            if not self._queue:
                self.card_start_time = None
                return None
            self._presented.append(self._queue.popleft())

        self.card_start_time = self._clock()
        return self._presented[self._cursor]

    def answer(self, rating: Rating) -> tuple[CardState, IntervalResult]:
        """
        Answers the current card.

        The new state and a review record are handed to the repository, if any. A card
        left in Learning or Relearning that is due again within the next 30 minutes is
        put back at the end of the queue.

        Args:
            rating: The rating given to the current card.

        Returns:
            tuple[CardState, IntervalResult]: The card's new state and its interval.

        Raises:
            EmptyQueueError: If no card is currently shown.
        """

        card = self.current()
        if card is None:
            raise EmptyQueueError("there is no current card to answer")

        now = self._clock()
        review_duration = None
        if self.card_start_time is not None:
            review_duration = int((now - self.card_start_time).total_seconds() * 1000)

        new_card, interval = self.scheduler.schedule(card, rating, now)
        rating = Rating(rating)

        record = ReviewLog.from_transition(
            before=card,
            after=new_card,
            rating=rating,
            review_datetime=now,
            review_duration=review_duration,
        )

        if self.repository is not None:
            self.repository.persist_state(card.card_id, new_card)
            self.repository.append_review(record)

        requeued = False
        if new_card.state.is_learning and new_card.due_date - now < REVISIT_WINDOW:
            self._queue.push_revisit(new_card)
            requeued = True

        self._undo_stack.append(
            UndoEntry(
                card_id=card.card_id,
                prior_state=card,
                answered_state=new_card,
                rating=rating,
                requeued=requeued,
            )
        )
        self._presented[self._cursor] = new_card
        self.reviews.append(record)

        if rating == Rating.Correct:
            self.stats.correct += 1
        else:
            self.stats.wrong += 1

        logger.debug(
            "answered card %s with %s, next due %s%s",
            card.card_id,
            rating.name,
            new_card.due_date.isoformat(),
            " (requeued)" if requeued else "",
        )

        return new_card, interval

    def undo(self) -> CardState:
        """
        Reverts the most recent answer.

        The card's prior state is handed back to the repository and the card becomes the
        current card again. Every copy of the answered state still waiting in the queue is
        dropped, whether it was re-enqueued by the answer or skipped afterwards, and so
        is any later slot that showed that copy without answering it.

        The review record already appended to the repository is not removed, since the
        repository has no delete operation. An undone first answer on a New card
        therefore still counts against the repository's new-cards-done-today tally.

        Returns:
            CardState: The restored state of the card.

        Raises:
            NothingToUndoError: If no answer is left to undo.
        """

        if not self._undo_stack:
            raise NothingToUndoError("there is no answer to undo")

        entry = self._undo_stack.pop()

        if self.repository is not None:
            self.repository.persist_state(entry.card_id, entry.prior_state)

        if self.reviews:
            self.reviews.pop()

        if entry.rating == Rating.Correct:
            self.stats.correct = max(0, self.stats.correct - 1)
        else:
            self.stats.wrong = max(0, self.stats.wrong - 1)

        self._queue.discard_revisits(entry.answered_state)

        slots = [
            index
            for index, card in enumerate(self._presented)
            if card is entry.answered_state
        ]
        if slots:
            position = slots[0]
            for index in reversed(slots[1:]):
                del self._presented[index]
            self._presented[position] = entry.prior_state
        else:
            # the answered card was skipped away, put it back in front of the current one
            position = max(0, min(self._cursor, len(self._presented)))
            self._presented.insert(position, entry.prior_state)
        self._cursor = position

        self.card_start_time = self._clock()

        logger.debug("undid %s answer on card %s", entry.rating.name, entry.card_id)

        return entry.prior_state

    def skip(self) -> CardState:
        """
        Moves the current card to the end of the queue.

        The cursor stays in place, so the card that slides into the vacated slot becomes
        the current card. Statistics are not touched.

        Returns:
            CardState: The new current card. This is the skipped card again if nothing else is left.

        Raises:
            EmptyQueueError: If no card is currently shown.
        """

        card = self.current()
        if card is None:
            raise EmptyQueueError("there is no current card to skip")

        del self._presented[self._cursor]
        self._queue.push_revisit(card)

        if self._cursor == len(self._presented):
            self._presented.append(self._queue.popleft())

        self.card_start_time = self._clock()

        logger.debug("skipped card %s", card.card_id)

        return self._presented[self._cursor]

    def preview(self) -> dict[Rating, IntervalResult]:
        """
        Previews the interval each rating would give the current card.

        Raises:
            EmptyQueueError: If no card is currently shown.
        """

        card = self.current()
        if card is None:
            raise EmptyQueueError("there is no current card to preview")

        return self.scheduler.preview(card, self._clock())

    def remaining(self) -> int:
        already_presented = max(0, len(self._presented) - self._cursor - 1)
        return len(self._queue) + already_presented

    def has_more(self) -> bool:
        return self.remaining() > 0

    def progress(self) -> float:
        total = len(self._presented) + len(self._queue)
        if total == 0:
            return 1.0
        return min(self._cursor + 1, len(self._presented)) / total

    def elapsed(self) -> float:
        """Wall-clock seconds since the session started."""
        return (self._clock() - self.start_time).total_seconds()

    def summary(self) -> SessionSummary:
        elapsed = self.elapsed()
        reviewed = len(self.reviews)

        return SessionSummary(
            total_cards=self.stats.total,
            reviewed=reviewed,
            remaining=self.remaining(),
            new=self.stats.new,
            learning=self.stats.learning,
            review=self.stats.review,
            wrong=self.stats.wrong,
            correct=self.stats.correct,
            elapsed_seconds=elapsed,
            avg_seconds=elapsed / reviewed if reviewed > 0 else 0.0,
            retention_rate=(
                self.stats.correct / reviewed * 100 if reviewed > 0 else 0.0
            ),
        )


__all__ = [
    "Session",
    "SessionStats",
    "SessionSummary",
    "UndoEntry",
    "DEFAULT_NEW_CARDS_PER_DAY",
]
