"""
flashcards.card
---------------

This module defines the CardState class.

Classes:
    CardState: The scheduling state of a single flashcard.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
import json
import time
from typing import TypedDict
from typing_extensions import Self
from flashcards.state import State


class CardStateDict(TypedDict):
    """
    JSON-serializable dictionary representation of a CardState object.
    """

    card_id: int
    state: int
    stability: float
    difficulty: float | None
    elapsed_days: float
    scheduled_days: float
    due_date: str
    last_review: str | None
    reps: int
    lapses: int
    learning_step: int


@dataclass(init=False)
class CardState:
    """
    Represents the scheduling state of a flashcard.

    CardState objects are passed by value into and out of the Scheduler, which never
    mutates the object it was given.

    Attributes:
        card_id: The id of the card. Defaults to the epoch milliseconds of when the card was created.
        state: The card's current lifecycle stage.
        stability: Days for the recall probability to decay to the target threshold.
        difficulty: Inherent recall difficulty in [1, 10] or None if the card was never scheduled.
        elapsed_days: Days since the previous review, as measured at the last review.
        scheduled_days: The interval, in days, chosen at the last review.
        due_date: The date and time when the card is due next.
        last_review: The date and time of the card's last review or None if never reviewed.
        reps: Total number of reviews.
        lapses: Number of times the card was forgotten.
        learning_step: Index into the scheduler's learning-step ladder.
    """

    card_id: int
    state: State
    stability: float
    difficulty: float | None
    elapsed_days: float
    scheduled_days: float
    due_date: datetime
    last_review: datetime | None
    reps: int
    lapses: int
    learning_step: int

    def __init__(
        self,
        card_id: int | None = None,
        state: State = State.New,
        stability: float = 0.0,
        difficulty: float | None = None,
        elapsed_days: float = 0.0,
        scheduled_days: float = 0.0,
        due_date: datetime | None = None,
        last_review: datetime | None = None,
        reps: int = 0,
        lapses: int = 0,
        learning_step: int = 0,
    ) -> None:
        if card_id is None:
            # epoch milliseconds of when the card was created
            card_id = int(datetime.now(timezone.utc).timestamp() * 1000)
            # wait 1ms to prevent potential card_id collision on next CardState creation
            time.sleep(0.001)
        self.card_id = card_id

        self.state = state
        self.stability = stability
        self.difficulty = difficulty
        self.elapsed_days = elapsed_days
        self.scheduled_days = scheduled_days

        if due_date is None:
            due_date = datetime.now(timezone.utc)
        self.due_date = due_date

        self.last_review = last_review
        self.reps = reps
        self.lapses = lapses
        self.learning_step = learning_step

    @property
    def is_new(self) -> bool:
        return self.state == State.New

    def is_due(self, now: datetime | None = None) -> bool:
        """
        Whether the card should be shown in a review at the given time.

        Args:
            now: The date and time to check against. Defaults to the current UTC time.

        Returns:
            True if the card's due date has been reached.
        """

        if now is None:
            now = datetime.now(timezone.utc)

        return self.due_date <= now

    def to_dict(self) -> CardStateDict:
        """
        Returns a JSON-serializable dictionary representation of the CardState object.

        This method is specifically useful for storing CardState objects in a database.

        Returns:
            A dictionary representation of the CardState object.
        """

        return {
            "card_id": self.card_id,
            "state": self.state.value,
            "stability": self.stability,
            "difficulty": self.difficulty,
            "elapsed_days": self.elapsed_days,
            "scheduled_days": self.scheduled_days,
            "due_date": self.due_date.isoformat(),
            "last_review": self.last_review.isoformat() if self.last_review else None,
            "reps": self.reps,
            "lapses": self.lapses,
            "learning_step": self.learning_step,
        }

    @classmethod
    def from_dict(cls, source_dict: CardStateDict) -> Self:
        """
        Creates a CardState object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing CardState object.

        Returns:
            A CardState object created from the provided dictionary.
        """

        return cls(
            card_id=int(source_dict["card_id"]),
            state=State(int(source_dict["state"])),
            stability=float(source_dict["stability"]),
            difficulty=(
                float(source_dict["difficulty"])
                if source_dict["difficulty"] is not None
                else None
            ),
            elapsed_days=float(source_dict["elapsed_days"]),
            scheduled_days=float(source_dict["scheduled_days"]),
            due_date=datetime.fromisoformat(source_dict["due_date"]),
            last_review=(
                datetime.fromisoformat(source_dict["last_review"])
                if source_dict["last_review"]
                else None
            ),
            reps=int(source_dict["reps"]),
            lapses=int(source_dict["lapses"]),
            learning_step=int(source_dict["learning_step"]),
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the CardState object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the CardState object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a CardState object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing CardState object.

        Returns:
            Self: A CardState object created from the JSON string.
        """

        source_dict: CardStateDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["CardState", "CardStateDict"]
