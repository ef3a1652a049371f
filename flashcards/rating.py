from enum import IntEnum


class Rating(IntEnum):
    """
    Enum representing the two possible ratings when reviewing a card.
    """

    Wrong = 1
    Correct = 2


__all__ = ["Rating"]
