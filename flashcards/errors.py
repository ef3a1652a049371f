"""
flashcards.errors
-----------------

Exceptions raised by the scheduler and the review session.
"""


class FlashcardsError(Exception):
    """Base class for all errors raised by the flashcards package."""


class InvalidStateError(FlashcardsError, ValueError):
    """
    Raised when a malformed CardState or rating is passed to the Scheduler.

    This is a precondition failure: the offending state is never coerced.
    """


class NothingToUndoError(FlashcardsError):
    """Raised by Session.undo() when no answer is left to undo."""


class EmptyQueueError(FlashcardsError):
    """Raised when a session operation needs a current card but there is none."""


__all__ = [
    "FlashcardsError",
    "InvalidStateError",
    "NothingToUndoError",
    "EmptyQueueError",
]
