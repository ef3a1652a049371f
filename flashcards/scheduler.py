"""
flashcards.scheduler
--------------------

This module defines the Scheduler class as well as the constants used in its calculations.

Classes:
    Scheduler: The binary-rating spaced-repetition scheduler.

Functions:
    schedule: Schedule a single card with a one-off Scheduler.
    preview: Preview both outcomes of a card with a one-off Scheduler.
"""

from __future__ import annotations
from copy import copy
import logging
import math
from datetime import datetime, timezone, timedelta
from random import Random
from typing_extensions import Self
from flashcards.card import CardState
from flashcards.errors import InvalidStateError
from flashcards.interval import (
    MINUTES_PER_DAY,
    SECONDS_PER_DAY,
    IntervalResult,
    days_to_seconds,
)
from flashcards.parameters import (
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    SchedulingParameters,
    SchedulingParametersDict,
)
from flashcards.rating import Rating
from flashcards.review_log import ReviewLog
from flashcards.state import State

logger = logging.getLogger(__name__)

# (upper bound in days, fuzz factor); the last range is open-ended
FUZZ_RANGES = (
    (7.0, 0.15),
    (30.0, 0.1),
    (math.inf, 0.05),
)
FUZZ_MIN_INTERVAL = 2.5
FUZZ_FLOOR = 2

# how much a low retrievability boosts stability growth on a successful recall
RETRIEVABILITY_BOOST = 0.5


def clamp(value, min_value, max_value):
    return max(min(value, max_value), min_value)


class Scheduler:
    """
    The binary-rating spaced-repetition scheduler.

    Computes the next state and due date of a card from its current state and a
    Wrong/Correct rating, using an exponential forgetting curve bounded by the
    configured target retention.

    The scheduler holds no card state between calls. Its only mutable member is the
    random source used for interval fuzzing, which can be seeded for reproducibility.

    Attributes:
        parameters: The immutable configuration of the scheduler.
    """

    parameters: SchedulingParameters

    def __init__(
        self,
        parameters: SchedulingParameters | None = None,
        rng: Random | None = None,
    ) -> None:
        if parameters is None:
            parameters = SchedulingParameters()
        self.parameters = parameters

        if rng is None:
            rng = Random()
        self._rng = rng

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Scheduler):
            return NotImplemented
        return self.parameters == other.parameters

    def __repr__(self) -> str:
        return f"Scheduler(parameters={self.parameters!r})"

    def schedule(
        self,
        card: CardState,
        rating: Rating,
        now: datetime | None = None,
    ) -> tuple[CardState, IntervalResult]:
        """
        Computes the next scheduling state of a card for a given rating at a given time.

        The card passed in is never modified; a new CardState is returned.

        Args:
            card: The card being reviewed.
            rating: The rating given to the card.
            now: The date and time of the review. Defaults to the current UTC time.

        Returns:
            tuple[CardState, IntervalResult]: The updated card and the interval it was scheduled for.

        Raises:
            InvalidStateError: If the card state or the rating is malformed.
            ValueError: If `now` is not timezone-aware.
        """

        now = self._normalize_datetime(now)
        rating = self._validate(card, rating)

        params = self.parameters
        steps = params.learning_steps

        stability = card.stability
        difficulty = (
            card.difficulty
            if card.difficulty is not None
            else params.initial_difficulty
        )

        elapsed_days = 0.0
        if card.last_review is not None:
            elapsed_days = max(
                0.0, (now - card.last_review).total_seconds() / SECONDS_PER_DAY
            )

        retrievability = self.retrievability(elapsed_days, stability)

        new_card = copy(card)

        match card.state:
            case State.New:
                new_card.reps = 1
                new_card.state = State.Learning
                new_card.stability = params.initial_stability(rating)
                new_card.difficulty = params.initial_difficulty

                if rating == Rating.Correct:
                    new_card.learning_step = 1
                    new_card.lapses = 0
                    interval_days = self.learning_interval(min(1, len(steps) - 1))
                else:
                    new_card.learning_step = 0
                    new_card.lapses = 1
                    interval_days = self.learning_interval(0)

            case State.Learning | State.Relearning:
                new_card.reps = card.reps + 1

                if rating == Rating.Correct:
                    next_step = card.learning_step + 1

                    if next_step >= len(steps):
                        # graduate
                        new_card.state = State.Review
                        new_card.stability = self.next_recall_stability(
                            difficulty, stability, retrievability
                        )
                        new_card.difficulty = self.next_difficulty(difficulty, rating)
                        new_card.learning_step = 0
                        interval_days = self.next_interval(new_card.stability)

                    else:
                        new_card.stability = stability
                        new_card.difficulty = difficulty
                        new_card.learning_step = next_step
                        interval_days = self.learning_interval(next_step)

                else:
                    new_card.stability = params.initial_stability_wrong
                    new_card.difficulty = self.next_difficulty(difficulty, rating)
                    new_card.learning_step = 0
                    # a failure chain that started in Review was already counted as a lapse
                    if card.state == State.Learning:
                        new_card.lapses = card.lapses + 1
                    interval_days = self.learning_interval(0)

            case State.Review:
                new_card.reps = card.reps + 1
                new_card.learning_step = 0
                new_card.difficulty = self.next_difficulty(difficulty, rating)

                if rating == Rating.Correct:
                    new_card.stability = self.next_recall_stability(
                        difficulty, stability, retrievability
                    )
                    interval_days = self.next_interval(new_card.stability)

                else:
                    new_card.state = State.Relearning
                    new_card.stability = self.next_forget_stability(stability)
                    new_card.lapses = card.lapses + 1
                    interval_days = self.learning_interval(0)

        # sub-day learning intervals are never fuzzed
        if new_card.state == State.Review and interval_days >= 1:
            interval_days = self.fuzz_interval(interval_days)

        new_card.elapsed_days = elapsed_days
        new_card.scheduled_days = interval_days
        new_card.due_date = now + timedelta(seconds=days_to_seconds(interval_days))
        new_card.last_review = now

        logger.debug(
            "scheduled card %s: %s -> %s on %s, interval %.4f days",
            card.card_id,
            card.state.name,
            new_card.state.name,
            rating.name,
            interval_days,
        )

        return new_card, IntervalResult.from_days(interval_days)

    def preview(
        self, card: CardState, now: datetime | None = None
    ) -> dict[Rating, IntervalResult]:
        """
        Computes the interval each rating would produce, without committing anything.

        Fuzzed intervals are drawn from a copy of the random source, so previewing a
        card never changes what a later call to schedule() produces.

        Args:
            card: The card about to be reviewed.
            now: The date and time of the review. Defaults to the current UTC time.

        Returns:
            dict[Rating, IntervalResult]: The interval for each possible rating.
        """

        now = self._normalize_datetime(now)

        previews = {}
        for rating in Rating:
            rng = Random()
            rng.setstate(self._rng.getstate())
            shadow = Scheduler(parameters=self.parameters, rng=rng)
            _, interval = shadow.schedule(card, rating, now)
            previews[rating] = interval

        return previews

    def review_card(
        self,
        card: CardState,
        rating: Rating,
        review_datetime: datetime | None = None,
        review_duration: int | None = None,
    ) -> tuple[CardState, ReviewLog]:
        """
        Schedules a card and builds the matching review record.

        Args:
            card: The card being reviewed.
            rating: The chosen rating for the card being reviewed.
            review_datetime: The date and time of the review.
            review_duration: The number of milliseconds it took to review the card or None if unspecified.

        Returns:
            tuple[CardState, ReviewLog]: The updated card and its corresponding review log.
        """

        review_datetime = self._normalize_datetime(review_datetime)
        new_card, _ = self.schedule(card, rating, review_datetime)

        review_log = ReviewLog.from_transition(
            before=card,
            after=new_card,
            rating=Rating(rating),
            review_datetime=review_datetime,
            review_duration=review_duration,
        )

        return new_card, review_log

    def reschedule_card(
        self, card: CardState, review_logs: list[ReviewLog]
    ) -> CardState:
        """
        Reschedules/updates the given card with the current scheduler provided that card's review logs.

        If the current card was previously scheduled with different parameters, for example a
        different target retention, you may want to reschedule it as if it had always been
        scheduled with this scheduler.

        Args:
            card: The card to be rescheduled/updated.
            review_logs: A list of that card's review logs (order doesn't matter).

        Returns:
            CardState: A new card that has been rescheduled/updated with this current scheduler.

        Raises:
            ValueError: If any of the review logs are for a card other than the one specified.
        """

        for review_log in review_logs:
            if review_log.card_id != card.card_id:
                raise ValueError(
                    f"ReviewLog card_id {review_log.card_id} does not match CardState card_id {card.card_id}"
                )

        review_logs = sorted(review_logs, key=lambda log: log.review_datetime)

        rescheduled_card = CardState(card_id=card.card_id, due_date=card.due_date)

        for review_log in review_logs:
            rescheduled_card, _ = self.schedule(
                rescheduled_card, review_log.rating, review_log.review_datetime
            )

        return rescheduled_card

    def get_card_retrievability(
        self, card: CardState, current_datetime: datetime | None = None
    ) -> float:
        """
        Calculates a card's current retrievability for a given date and time.

        The retrievability of a card is the predicted probability that the card is correctly recalled at the provided datetime.

        Args:
            card: The card whose retrievability is to be calculated
            current_datetime: The current date and time

        Returns:
            float: The retrievability of the card.
        """

        if card.last_review is None:
            return 0

        current_datetime = self._normalize_datetime(current_datetime)

        elapsed_days = max(
            0.0, (current_datetime - card.last_review).total_seconds() / SECONDS_PER_DAY
        )

        return self.retrievability(elapsed_days, card.stability)

    def retrievability(self, elapsed_days: float, stability: float) -> float:
        if stability <= 0:
            return 0
        return math.exp(-elapsed_days / stability * math.log(2))

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        if rating == Rating.Correct:
            next_difficulty = difficulty - self.parameters.difficulty_decay
        else:
            next_difficulty = difficulty + self.parameters.difficulty_growth

        return clamp(next_difficulty, MIN_DIFFICULTY, MAX_DIFFICULTY)

    def next_recall_stability(
        self, difficulty: float, stability: float, retrievability: float
    ) -> float:
        """
        Stability after a successful recall.

        Harder cards and recalls made while retrievability was still high grow less.
        Growth is never less than one day.
        """

        difficulty_factor = (
            1 - (difficulty - 1) * self.parameters.difficulty_weight_in_growth / 9
        )
        retrievability_boost = 1 + (1 - retrievability) * RETRIEVABILITY_BOOST

        next_stability = (
            stability
            * self.parameters.stability_growth_factor
            * difficulty_factor
            * retrievability_boost
        )

        return max(stability + 1, next_stability)

    def next_forget_stability(self, stability: float) -> float:
        return max(
            self.parameters.initial_stability_wrong,
            stability * self.parameters.forget_stability_retention,
        )

    def next_interval(self, stability: float) -> int:
        # the interval at which the forgetting curve reaches the target retention
        next_interval = (
            -stability * math.log(self.parameters.target_retention) / math.log(2)
        )

        next_interval = math.floor(next_interval + 0.5)  # full days, halves round up

        return clamp(next_interval, 1, self.parameters.max_interval_days)

    def learning_interval(self, step: int) -> float:
        steps = self.parameters.learning_steps
        return steps[min(step, len(steps) - 1)] / MINUTES_PER_DAY

    def fuzz_interval(self, interval_days: float) -> float:
        """
        Takes the current calculated interval and adds a small amount of random fuzz to it.
        For example, a card that would've been due in 50 days, after fuzzing, might be due in 48, or 52 days.

        Args:
            interval_days: The calculated next interval, before fuzzing.

        Returns:
            float: The new interval, after fuzzing.
        """

        if not self.parameters.fuzz_enabled or interval_days < FUZZ_MIN_INTERVAL:
            return interval_days

        for upper_bound, factor in FUZZ_RANGES:
            if interval_days < upper_bound:
                fuzz_factor = factor
                break

        min_ivl = max(FUZZ_FLOOR, math.floor(interval_days * (1 - fuzz_factor)))
        max_ivl = math.floor(interval_days * (1 + fuzz_factor))

        # make sure the min_ivl and max_ivl fall into a valid range
        max_ivl = min(max_ivl, self.parameters.max_interval_days)
        min_ivl = min(min_ivl, max_ivl)

        return self._rng.randint(min_ivl, max_ivl)

    def to_dict(self) -> SchedulingParametersDict:
        return self.parameters.to_dict()

    @classmethod
    def from_dict(cls, source_dict: SchedulingParametersDict) -> Self:
        return cls(parameters=SchedulingParameters.from_dict(source_dict))

    def to_json(self, indent: int | str | None = None) -> str:
        return self.parameters.to_json(indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        return cls(parameters=SchedulingParameters.from_json(source_json))

    def _normalize_datetime(self, value: datetime | None) -> datetime:
        if value is None:
            return datetime.now(timezone.utc)

        if value.tzinfo is None:
            raise ValueError("datetime must be timezone-aware")

        if value.tzinfo != timezone.utc:
            value = value.astimezone(timezone.utc)

        return value

    def _validate(self, card: CardState, rating: Rating) -> Rating:
        error_messages = []

        if not isinstance(card.state, State):
            error_messages.append(f"state = {card.state!r} is not a known card state")

        if card.stability is None or math.isnan(card.stability) or card.stability < 0:
            error_messages.append(f"stability = {card.stability} must not be negative")

        if card.difficulty is not None and not (
            MIN_DIFFICULTY <= card.difficulty <= MAX_DIFFICULTY
        ):
            error_messages.append(
                f"difficulty = {card.difficulty} is out of bounds: ({MIN_DIFFICULTY}, {MAX_DIFFICULTY})"
            )

        for name in ("reps", "lapses", "learning_step"):
            value = getattr(card, name)
            if value < 0:
                error_messages.append(f"{name} = {value} must not be negative")

        try:
            rating = Rating(rating)
        except ValueError:
            error_messages.append(f"rating = {rating!r} is not a known rating")

        if len(error_messages) > 0:
            raise InvalidStateError(
                f"Cannot schedule card {card.card_id}:\n" + "\n".join(error_messages)
            )

        return rating


def schedule(
    state: CardState,
    rating: Rating,
    now: datetime | None = None,
    params: SchedulingParameters | None = None,
    rng: Random | None = None,
) -> tuple[CardState, IntervalResult]:
    """
    Schedules a card with a Scheduler built from the given parameters.

    See Scheduler.schedule().
    """

    return Scheduler(parameters=params, rng=rng).schedule(state, rating, now)


def preview(
    state: CardState,
    now: datetime | None = None,
    params: SchedulingParameters | None = None,
    rng: Random | None = None,
) -> dict[Rating, IntervalResult]:
    """
    Previews both ratings of a card with a Scheduler built from the given parameters.

    See Scheduler.preview().
    """

    return Scheduler(parameters=params, rng=rng).preview(state, now)


__all__ = ["Scheduler", "schedule", "preview", "FUZZ_RANGES"]
