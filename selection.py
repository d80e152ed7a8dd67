"""
selection.py – question filtering and randomized exam batches
"""

import random
from dataclasses import dataclass
from typing import Optional, Sequence

from models import MAX_EXAM_COUNT, MIN_EXAM_COUNT, Question


@dataclass(frozen=True)
class QuestionFilter:
    """Subject/topic substring match (case-insensitive) and exact level match.

    Empty text and a None level disable the corresponding predicate.
    """
    subject: str = ""
    topic:   str = ""
    level:   Optional[int] = None

    def matches(self, question: Question) -> bool:
        if self.subject and self.subject.lower() not in question.subject.lower():
            return False
        if self.topic and self.topic.lower() not in question.topic.lower():
            return False
        if self.level is not None and question.level != self.level:
            return False
        return True

    def apply(self, questions: Sequence[Question]) -> list[Question]:
        return [q for q in questions if self.matches(q)]


def clamp_exam_count(count: Optional[int]) -> int:
    if count is None:
        return MIN_EXAM_COUNT
    return max(MIN_EXAM_COUNT, min(MAX_EXAM_COUNT, int(count)))


def select_exam_batch(
    pool: Sequence[Question],
    count: int,
    rng: Optional[random.Random] = None,
) -> list[Question]:
    """Random sample without replacement of min(count, len(pool)) questions.

    Returns an empty list for an empty pool; the caller decides how to report it.
    """
    rng = rng or random.Random()
    size = min(clamp_exam_count(count), len(pool))
    return rng.sample(list(pool), size)
