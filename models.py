"""
models.py – pydantic data model for questions, solutions and exam results
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

# ── Domain constants ──────────────────────────────────────────────────────────

ANSWER_LETTERS = ("A", "B", "C", "D", "E")
AnswerLetter   = Literal["A", "B", "C", "D", "E"]

MIN_LEVEL     = 1
INITIAL_LEVEL = 3

MIN_EXAM_COUNT     = 1
MAX_EXAM_COUNT     = 50
DEFAULT_EXAM_COUNT = 5

PEN_COLORS        = ("#5b8cff", "#ff5c5c", "#4caf50", "#ffb347", "#fff")
DEFAULT_PEN_COLOR = PEN_COLORS[0]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ──────────────────────────────────────────────
# Stored records
# ──────────────────────────────────────────────

class Solution(BaseModel):
    """One recorded attempt: the drawn work plus the chosen letter."""
    draw:       str          # PNG data URL exported from the drawing canvas
    is_correct: bool
    selected:   str
    date:       str = Field(default_factory=utc_now_iso)


class QuestionDraft(BaseModel):
    """Question fields supplied by the client; the store assigns id and created_at."""
    img_url:      str
    storage_path: str
    subject:      str = ""
    topic:        str = ""
    answer:       AnswerLetter
    level:        int = Field(default=INITIAL_LEVEL, ge=MIN_LEVEL, le=INITIAL_LEVEL)
    solutions:    list[Solution] = []


class Question(QuestionDraft):
    id:         str
    created_at: str


class ExamResult(BaseModel):
    """A single exam attempt; lives only until the exam is completed."""
    question:   Question
    selected:   str
    is_correct: bool
    draw:       str

    def to_solution(self) -> Solution:
        return Solution(draw=self.draw, is_correct=self.is_correct, selected=self.selected)


# ──────────────────────────────────────────────
# Request bodies
# ──────────────────────────────────────────────

class FilterRequest(BaseModel):
    subject: str = ""
    topic:   str = ""
    level:   Optional[int] = None
    count:   int = DEFAULT_EXAM_COUNT


class ChoiceRequest(BaseModel):
    letter: str


class PenRequest(BaseModel):
    color: str


class StrokeRequest(BaseModel):
    """Freehand stroke as a list of [x, y] points in canvas coordinates."""
    points: list[tuple[float, float]]


class StartExamRequest(BaseModel):
    count: Optional[int] = None
