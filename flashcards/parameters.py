"""
flashcards.parameters
---------------------

This module defines the SchedulingParameters class as well as the default values used in its calculations.

Classes:
    SchedulingParameters: Immutable configuration of a Scheduler.
"""

from __future__ import annotations
from dataclasses import dataclass, fields
import json
import math
from typing import TypedDict
from typing_extensions import Self
from flashcards.rating import Rating

MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0

MIN_TARGET_RETENTION = 0.70
MAX_TARGET_RETENTION = 0.95

DEFAULT_LEARNING_STEPS = (1.0, 10.0, 60.0)  # minutes


class SchedulingParametersDict(TypedDict):
    """
    JSON-serializable dictionary representation of a SchedulingParameters object.
    """

    initial_stability_wrong: float
    initial_stability_correct: float
    initial_difficulty: float
    difficulty_decay: float
    difficulty_growth: float
    stability_growth_factor: float
    difficulty_weight_in_growth: float
    forget_stability_retention: float
    learning_steps: list[float]
    target_retention: float
    max_interval_days: int
    fuzz_enabled: bool


@dataclass(frozen=True)
class SchedulingParameters:
    """
    Configuration of the binary-rating scheduler.

    Instances are immutable; use dataclasses.replace() to derive a modified copy.

    Attributes:
        initial_stability_wrong: Seed stability (days) of a new card first answered Wrong.
        initial_stability_correct: Seed stability (days) of a new card first answered Correct.
        initial_difficulty: Seed difficulty of a new card.
        difficulty_decay: How much difficulty decreases on a Correct answer.
        difficulty_growth: How much difficulty increases on a Wrong answer.
        stability_growth_factor: Base multiplier applied to stability on a successful recall.
        difficulty_weight_in_growth: How strongly difficulty dampens stability growth.
        forget_stability_retention: Fraction of stability kept after a lapse.
        learning_steps: Short intervals, in minutes, a card passes through before graduating.
        target_retention: The desired probability of recall when a card becomes due.
        max_interval_days: The maximum number of days a card can be scheduled into the future.
        fuzz_enabled: Whether to apply a small amount of random 'fuzz' to calculated intervals.
    """

    initial_stability_wrong: float = 0.5
    initial_stability_correct: float = 3.0
    initial_difficulty: float = 5.0
    difficulty_decay: float = 0.3
    difficulty_growth: float = 0.5
    stability_growth_factor: float = 2.5
    difficulty_weight_in_growth: float = 0.1
    forget_stability_retention: float = 0.3
    learning_steps: tuple[float, ...] = DEFAULT_LEARNING_STEPS
    target_retention: float = 0.85
    max_interval_days: int = 365
    fuzz_enabled: bool = True

    def __post_init__(self) -> None:
        # accept lists from callers and from_dict() while keeping the instance hashable
        object.__setattr__(self, "learning_steps", tuple(self.learning_steps))
        self._validate()

    def _validate(self) -> None:
        error_messages = []

        if not MIN_TARGET_RETENTION <= self.target_retention <= MAX_TARGET_RETENTION:
            error_messages.append(
                f"target_retention = {self.target_retention} is out of bounds: ({MIN_TARGET_RETENTION}, {MAX_TARGET_RETENTION})"
            )

        if len(self.learning_steps) == 0:
            error_messages.append("learning_steps must contain at least one step")

        for index, step in enumerate(self.learning_steps):
            if not step > 0:
                error_messages.append(
                    f"learning_steps[{index}] = {step} must be a positive number of minutes"
                )

        for name in ("initial_stability_wrong", "initial_stability_correct"):
            value = getattr(self, name)
            if not value > 0:
                error_messages.append(f"{name} = {value} must be positive")

        if not MIN_DIFFICULTY <= self.initial_difficulty <= MAX_DIFFICULTY:
            error_messages.append(
                f"initial_difficulty = {self.initial_difficulty} is out of bounds: ({MIN_DIFFICULTY}, {MAX_DIFFICULTY})"
            )

        for name in (
            "difficulty_decay",
            "difficulty_growth",
            "stability_growth_factor",
            "difficulty_weight_in_growth",
        ):
            value = getattr(self, name)
            if math.isnan(value) or value < 0:
                error_messages.append(f"{name} = {value} must not be negative")

        if not 0 < self.forget_stability_retention <= 1:
            error_messages.append(
                f"forget_stability_retention = {self.forget_stability_retention} is out of bounds: (0, 1]"
            )

        if self.max_interval_days < 1:
            error_messages.append(
                f"max_interval_days = {self.max_interval_days} must be at least 1"
            )

        if len(error_messages) > 0:
            raise ValueError(
                "One or more scheduling parameters are invalid:\n"
                + "\n".join(error_messages)
            )

    def initial_stability(self, rating: Rating) -> float:
        if rating == Rating.Correct:
            return self.initial_stability_correct
        return self.initial_stability_wrong

    def to_dict(self) -> SchedulingParametersDict:
        """
        Returns a dictionary representation of the SchedulingParameters object.

        Returns:
            SchedulingParametersDict: A dictionary representation of the SchedulingParameters object.
        """

        return {
            "initial_stability_wrong": self.initial_stability_wrong,
            "initial_stability_correct": self.initial_stability_correct,
            "initial_difficulty": self.initial_difficulty,
            "difficulty_decay": self.difficulty_decay,
            "difficulty_growth": self.difficulty_growth,
            "stability_growth_factor": self.stability_growth_factor,
            "difficulty_weight_in_growth": self.difficulty_weight_in_growth,
            "forget_stability_retention": self.forget_stability_retention,
            "learning_steps": list(self.learning_steps),
            "target_retention": self.target_retention,
            "max_interval_days": self.max_interval_days,
            "fuzz_enabled": self.fuzz_enabled,
        }

    @classmethod
    def from_dict(cls, source_dict: SchedulingParametersDict) -> Self:
        """
        Creates a SchedulingParameters object from an existing dictionary.

        Keys missing from the dictionary keep their default values, so a partial
        dictionary of user overrides is accepted.

        Args:
            source_dict: A dictionary representing an existing SchedulingParameters object.

        Returns:
            Self: A SchedulingParameters object created from the provided dictionary.

        Raises:
            ValueError: If the dictionary contains unknown keys or invalid values.
        """

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(source_dict) - known)
        if unknown:
            raise ValueError(f"Unknown scheduling parameters: {', '.join(unknown)}")

        return cls(**source_dict)

    def to_json(self, indent: int | str | None = None) -> str:
        """
        Returns a JSON-serialized string of the SchedulingParameters object.

        Args:
            indent: Equivalent argument to the indent in json.dumps()

        Returns:
            str: A JSON-serialized string of the SchedulingParameters object.
        """

        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, source_json: str) -> Self:
        source_dict: SchedulingParametersDict = json.loads(source_json)
        return cls.from_dict(source_dict=source_dict)


__all__ = [
    "SchedulingParameters",
    "SchedulingParametersDict",
    "MIN_DIFFICULTY",
    "MAX_DIFFICULTY",
]
