from enum import IntEnum


class State(IntEnum):
    """
    Enum representing the lifecycle stage of a CardState object.

    New cards have never been answered. Learning and Relearning cards walk the short
    learning-step ladder (first time, and after a lapse), Review cards are on day-scale
    intervals.
    """

    New = 0
    Learning = 1
    Review = 2
    Relearning = 3

    @property
    def is_learning(self) -> bool:
        """Whether the card is on the learning-step ladder."""
        return self in (State.Learning, State.Relearning)


__all__ = ["State"]
