"""
grading.py – answer checking and the difficulty-level heuristic
"""

from models import MIN_LEVEL


def grade(selected: str, answer: str) -> bool:
    """Exact, case-sensitive single-letter comparison."""
    return selected == answer


def level_after(level: int, is_correct: bool) -> int:
    """A correct answer lowers the level by one, never below MIN_LEVEL.

    Incorrect answers leave the level untouched; the level never rises.
    """
    if is_correct and level > MIN_LEVEL:
        return level - 1
    return level
