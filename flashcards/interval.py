"""
flashcards.interval
-------------------

This module defines the IntervalResult returned alongside every scheduling decision.

Classes:
    IntervalCategory: Enum representing the coarse unit an interval is best displayed in.
    IntervalResult: The raw interval in days plus its display category.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
import math
from typing_extensions import Self

MINUTES_PER_DAY = 24 * 60
SECONDS_PER_DAY = 24 * 60 * 60


class IntervalCategory(Enum):
    """
    Enum representing the unit an interval falls into, for display purposes only.
    """

    Minutes = "minutes"
    Hours = "hours"
    Days = "days"
    Months = "months"
    Years = "years"


def days_to_seconds(days: float) -> int:
    # round away float noise first so that e.g. a 60 minute step is exactly 3600 seconds
    return math.floor(round(days * SECONDS_PER_DAY, 6))


def categorize(days: float) -> IntervalCategory:
    if days < 1:
        if days * MINUTES_PER_DAY < 60:
            return IntervalCategory.Minutes
        return IntervalCategory.Hours
    elif days < 30:
        return IntervalCategory.Days
    elif days < 365:
        return IntervalCategory.Months
    return IntervalCategory.Years


@dataclass(frozen=True)
class IntervalResult:
    """
    The interval chosen by the Scheduler for a single review outcome.

    Attributes:
        days: The interval in days. Learning steps produce fractional values.
        category: The unit the interval is best displayed in.
    """

    days: float
    category: IntervalCategory

    @classmethod
    def from_days(cls, days: float) -> Self:
        return cls(days=days, category=categorize(days))

    @property
    def minutes(self) -> float:
        return self.days * MINUTES_PER_DAY

    @property
    def as_timedelta(self) -> timedelta:
        return timedelta(seconds=days_to_seconds(self.days))


__all__ = ["IntervalCategory", "IntervalResult", "categorize", "days_to_seconds"]
