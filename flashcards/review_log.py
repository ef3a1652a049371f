"""
flashcards.review_log
---------------------

This module defines the ReviewLog class.

Classes:
    ReviewLog: Represents the record of a single answered review.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import TypedDict
import json
from typing_extensions import Self
from flashcards.card import CardState
from flashcards.rating import Rating
from flashcards.state import State


class ReviewLogDict(TypedDict):
    """
    JSON-serializable dictionary representation of a ReviewLog object.
    """

    card_id: int
    rating: int
    review_datetime: str
    review_duration: int | None
    state_before: int
    state_after: int
    stability_before: float
    stability_after: float
    difficulty_before: float | None
    difficulty_after: float | None
    scheduled_days: float


@dataclass
class ReviewLog:
    """
    Represents the log entry of a CardState object that has been reviewed.

    Attributes:
        card_id: The id of the card being reviewed.
        rating: The rating given to the card during the review.
        review_datetime: The date and time of the review.
        review_duration: The number of milliseconds it took to review the card or None if unspecified.
        state_before: The card's state when it was shown.
        state_after: The card's state after scheduling.
        stability_before: The card's stability when it was shown.
        stability_after: The card's stability after scheduling.
        difficulty_before: The card's difficulty when it was shown.
        difficulty_after: The card's difficulty after scheduling.
        scheduled_days: The interval the card was scheduled for.
    """

    card_id: int
    rating: Rating
    review_datetime: datetime
    review_duration: int | None
    state_before: State
    state_after: State
    stability_before: float
    stability_after: float
    difficulty_before: float | None
    difficulty_after: float | None
    scheduled_days: float

    @classmethod
    def from_transition(
        cls,
        *,
        before: CardState,
        after: CardState,
        rating: Rating,
        review_datetime: datetime,
        review_duration: int | None = None,
    ) -> Self:
        return cls(
            card_id=before.card_id,
            rating=rating,
            review_datetime=review_datetime,
            review_duration=review_duration,
            state_before=before.state,
            state_after=after.state,
            stability_before=before.stability,
            stability_after=after.stability,
            difficulty_before=before.difficulty,
            difficulty_after=after.difficulty,
            scheduled_days=after.scheduled_days,
        )

    def to_dict(
        self,
    ) -> ReviewLogDict:
        """
        Returns a dictionary representation of the ReviewLog object.

        Returns:
            A dictionary representation of the ReviewLog object.
        """

        return {
            "card_id": self.card_id,
            "rating": int(self.rating),
            "review_datetime": self.review_datetime.isoformat(),
            "review_duration": self.review_duration,
            "state_before": int(self.state_before),
            "state_after": int(self.state_after),
            "stability_before": self.stability_before,
            "stability_after": self.stability_after,
            "difficulty_before": self.difficulty_before,
            "difficulty_after": self.difficulty_after,
            "scheduled_days": self.scheduled_days,
        }

    @classmethod
    def from_dict(
        cls,
        source_dict: ReviewLogDict,
    ) -> Self:
        """
        Creates a ReviewLog object from an existing dictionary.

        Args:
            source_dict: A dictionary representing an existing ReviewLog object.

        Returns:
            A ReviewLog object created from the provided dictionary.
        """

        return cls(
            card_id=source_dict["card_id"],
            rating=Rating(int(source_dict["rating"])),
            review_datetime=datetime.fromisoformat(source_dict["review_datetime"]),
            review_duration=source_dict["review_duration"],
            state_before=State(int(source_dict["state_before"])),
            state_after=State(int(source_dict["state_after"])),
            stability_before=source_dict["stability_before"],
            stability_after=source_dict["stability_after"],
            difficulty_before=source_dict["difficulty_before"],
            difficulty_after=source_dict["difficulty_after"],
            scheduled_days=source_dict["scheduled_days"],
        )

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the ReviewLog object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the ReviewLog object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        """
        Creates a ReviewLog object from a JSON-serialized string.

        Args:
            source_json: A JSON-serialized string of an existing ReviewLog object.

        Returns:
            Self: A ReviewLog object created from the JSON string.
        """

        source_dict: ReviewLogDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = ["ReviewLog", "ReviewLogDict"]
