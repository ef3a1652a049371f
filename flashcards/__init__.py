"""
flashcards
----------

A binary-rating spaced-repetition scheduler: given a flashcard's learning history and a
Wrong/Correct rating, computes its next review state and due date, and steps a user
through a review session.
"""

from flashcards.scheduler import Scheduler, schedule, preview
from flashcards.parameters import SchedulingParameters
from flashcards.state import State
from flashcards.card import CardState
from flashcards.rating import Rating
from flashcards.interval import IntervalCategory, IntervalResult
from flashcards.review_log import ReviewLog
from flashcards.repository import CardFilter, CardRepository, InMemoryCardRepository
from flashcards.session import Session, SessionSummary
from flashcards.errors import (
    FlashcardsError,
    InvalidStateError,
    NothingToUndoError,
    EmptyQueueError,
)

__all__ = [
    "Scheduler",
    "schedule",
    "preview",
    "SchedulingParameters",
    "CardState",
    "Rating",
    "ReviewLog",
    "State",
    "IntervalCategory",
    "IntervalResult",
    "CardFilter",
    "CardRepository",
    "InMemoryCardRepository",
    "Session",
    "SessionSummary",
    "FlashcardsError",
    "InvalidStateError",
    "NothingToUndoError",
    "EmptyQueueError",
]
