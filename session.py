"""
session.py – the study session controller

The session owns the working copy of the question list and the current mode.
Modes form a tagged union; every mode change goes through ``_transition``,
which rejects moves that the flow does not allow.

User-facing precondition failures (missing image, no answer letter, empty
drawing, empty exam pool, unknown question) are reported through a
``Feedback`` value and leave the mode unchanged.  Store failures are caught
where the store is called, logged, and reported with a generic message.
"""

import json
import logging
import random
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Union

from drawing import DrawingCanvas, validate_color
from grading import grade, level_after
from models import (
    ANSWER_LETTERS,
    DEFAULT_EXAM_COUNT,
    DEFAULT_PEN_COLOR,
    INITIAL_LEVEL,
    ExamResult,
    Question,
    QuestionDraft,
    Solution,
)
from selection import QuestionFilter, clamp_exam_count, select_exam_batch
from store import StoreError

logger = logging.getLogger("mistakebook.session")

GENERIC_ERROR = "Something went wrong."


class Feedback(NamedTuple):
    ok:      bool
    message: str = ""


class IllegalTransition(Exception):
    """Raised when an operation is invoked from a mode that does not allow it."""


# ──────────────────────────────────────────────
# Modes
# ──────────────────────────────────────────────

@dataclass
class Browsing:
    pass


@dataclass
class Creating:
    pass


@dataclass
class Solving:
    question: Question
    canvas:   DrawingCanvas
    selected: str = ""


@dataclass
class ReviewingHistory:
    question: Question


@dataclass
class Exam:
    questions: list[Question]
    canvas:    DrawingCanvas
    index:     int = 0
    selected:  str = ""
    results:   list[ExamResult] = field(default_factory=list)

    @property
    def current(self) -> Question:
        return self.questions[self.index]

    @property
    def is_last(self) -> bool:
        return self.index + 1 >= len(self.questions)


@dataclass
class ExamResults:
    results: list[ExamResult]
    saved:   bool = True

    @property
    def correct(self) -> int:
        return sum(1 for r in self.results if r.is_correct)

    @property
    def incorrect(self) -> int:
        return len(self.results) - self.correct


Mode = Union[Browsing, Creating, Solving, ReviewingHistory, Exam, ExamResults]

# Every mode may fall back to Browsing (the "back" action).
_ALLOWED: dict[type, tuple[type, ...]] = {
    Browsing:         (Browsing, Creating, Solving, ReviewingHistory, Exam),
    Creating:         (Browsing,),
    Solving:          (Browsing,),
    ReviewingHistory: (Browsing,),
    Exam:             (Browsing, Exam, ExamResults),
    ExamResults:      (Browsing,),
}


# ──────────────────────────────────────────────
# Session
# ──────────────────────────────────────────────

class StudySession:
    def __init__(self, store, rng: Optional[random.Random] = None) -> None:
        self.store = store
        self.rng = rng or random.Random()
        self.questions: list[Question] = []
        self.mode: Mode = Browsing()
        self.loading = False
        self.filter = QuestionFilter()
        self.exam_count = DEFAULT_EXAM_COUNT
        self.pen_color = DEFAULT_PEN_COLOR

    # ── State plumbing ───────────────────────────────────────────────────────

    def _transition(self, target: Mode) -> None:
        allowed = _ALLOWED[type(self.mode)]
        if not isinstance(target, allowed):
            raise IllegalTransition(
                f"Cannot go from {type(self.mode).__name__} to {type(target).__name__}"
            )
        logger.debug(f"Mode {type(self.mode).__name__} -> {type(target).__name__}")
        self.mode = target

    def _require(self, *modes: type) -> None:
        if not isinstance(self.mode, modes):
            names = ", ".join(m.__name__ for m in modes)
            raise IllegalTransition(
                f"Operation needs mode {names}, session is in {type(self.mode).__name__}"
            )

    def _find(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.id == question_id), None)

    def _new_canvas(self, question: Question) -> DrawingCanvas:
        background = None
        try:
            background = self.store.image_file(question.storage_path)
        except ValueError as exc:
            logger.warning(f"No background for question {question.id}: {exc}")
        return DrawingCanvas.for_background(background, pen_color=self.pen_color)

    @property
    def canvas(self) -> Optional[DrawingCanvas]:
        """Drawing canvas of the active Solving or Exam mode, if any."""
        if isinstance(self.mode, (Solving, Exam)):
            return self.mode.canvas
        return None

    # ── Loading ──────────────────────────────────────────────────────────────

    def refresh(self) -> Feedback:
        """Replace the working copy with a fresh fetch from the store."""
        self.loading = True
        try:
            self.questions = self.store.fetch_all()
            return Feedback(True)
        except StoreError as exc:
            logger.error(f"Error loading questions: {exc}", exc_info=True)
            return Feedback(False, GENERIC_ERROR)
        finally:
            self.loading = False

    # ── Browsing ─────────────────────────────────────────────────────────────

    def set_filter(
        self,
        subject: str = "",
        topic: str = "",
        level: Optional[int] = None,
        count: Optional[int] = None,
    ) -> None:
        self.filter = QuestionFilter(subject=subject, topic=topic, level=level)
        if count is not None:
            self.exam_count = clamp_exam_count(count)

    def visible_questions(self) -> list[Question]:
        return self.filter.apply(self.questions)

    def back(self) -> None:
        """Return to Browsing from any mode; nothing is written."""
        self._transition(Browsing())

    def delete_question(self, question_id: str) -> Feedback:
        self._require(Browsing)
        question = self._find(question_id)
        if question is None:
            return Feedback(False, "Question not found.")
        self.loading = True
        try:
            self.store.remove(question.id, question.storage_path)
        except StoreError as exc:
            logger.error(f"Error deleting question {question_id}: {exc}", exc_info=True)
            return Feedback(False, GENERIC_ERROR)
        finally:
            self.loading = False
        self.refresh()
        return Feedback(True, "Question deleted.")

    def export_json(self) -> str:
        return json.dumps([q.model_dump() for q in self.questions], indent=2, ensure_ascii=False)

    # ── Creating ─────────────────────────────────────────────────────────────

    def begin_create(self) -> None:
        self._transition(Creating())

    def submit_question(
        self,
        image_name: Optional[str],
        image_data: Optional[bytes],
        subject: str,
        topic: str,
        answer: str,
    ) -> Feedback:
        self._require(Creating)
        if not image_data or not answer:
            return Feedback(False, "Please select an image and an answer.")
        if answer not in ANSWER_LETTERS:
            return Feedback(False, f"Answer must be one of {', '.join(ANSWER_LETTERS)}.")

        self.loading = True
        try:
            url, path = self.store.upload_image(image_name or "image", image_data)
            self.store.create(QuestionDraft(
                img_url      = url,
                storage_path = path,
                subject      = subject,
                topic        = topic,
                answer       = answer,
                level        = INITIAL_LEVEL,
                solutions    = [],
            ))
        except StoreError as exc:
            logger.error(f"Error adding question: {exc}", exc_info=True)
            return Feedback(False, GENERIC_ERROR)
        finally:
            self.loading = False

        self.refresh()
        self._transition(Browsing())
        return Feedback(True, "Question added.")

    # ── Solving ──────────────────────────────────────────────────────────────

    def begin_solve(self, question_id: str) -> Feedback:
        self._require(Browsing)
        question = self._find(question_id)
        if question is None:
            return Feedback(False, "Question not found.")
        self._transition(Solving(question=question, canvas=self._new_canvas(question)))
        return Feedback(True)

    def choose(self, letter: str) -> Feedback:
        self._require(Solving, Exam)
        if letter not in ANSWER_LETTERS:
            return Feedback(False, f"Choice must be one of {', '.join(ANSWER_LETTERS)}.")
        self.mode.selected = letter
        return Feedback(True)

    def set_pen_color(self, color: str) -> None:
        """Change the pen for later strokes; raises ValueError for unknown colours."""
        self.pen_color = validate_color(color)
        if self.canvas is not None:
            self.canvas.pen_color = color

    def _attempt_guard(self) -> Optional[Feedback]:
        if not self.mode.selected or self.mode.canvas.is_empty:
            return Feedback(False, "Please choose an answer and show your work.")
        return None

    def submit_solution(self) -> Feedback:
        self._require(Solving)
        blocked = self._attempt_guard()
        if blocked:
            return blocked

        question = self.mode.question
        is_correct = grade(self.mode.selected, question.answer)
        solution = Solution(
            draw       = self.mode.canvas.export(),
            is_correct = is_correct,
            selected   = self.mode.selected,
        )

        self.loading = True
        try:
            self.store.update(question.id, {
                "solutions": [s.model_dump() for s in question.solutions] + [solution.model_dump()],
                "level":     level_after(question.level, is_correct),
            })
        except StoreError as exc:
            logger.error(f"Error saving solution for {question.id}: {exc}", exc_info=True)
            return Feedback(False, GENERIC_ERROR)
        finally:
            self.loading = False

        self.refresh()
        self._transition(Browsing())
        if is_correct:
            return Feedback(True, "Correct!")
        return Feedback(True, f"Wrong! Correct answer: {question.answer}")

    # ── History ──────────────────────────────────────────────────────────────

    def review_history(self, question_id: str) -> Feedback:
        self._require(Browsing)
        question = self._find(question_id)
        if question is None:
            return Feedback(False, "Question not found.")
        self._transition(ReviewingHistory(question=question))
        return Feedback(True)

    # ── Exam ─────────────────────────────────────────────────────────────────

    def start_exam(self, count: Optional[int] = None) -> Feedback:
        self._require(Browsing)
        if count is not None:
            self.exam_count = clamp_exam_count(count)
        batch = select_exam_batch(self.visible_questions(), self.exam_count, self.rng)
        if not batch:
            return Feedback(False, "No eligible questions found.")
        self._transition(Exam(questions=batch, canvas=self._new_canvas(batch[0])))
        logger.info(f"Exam started with {len(batch)} questions")
        return Feedback(True)

    def answer_exam_question(self) -> Feedback:
        self._require(Exam)
        blocked = self._attempt_guard()
        if blocked:
            return blocked

        exam = self.mode
        question = exam.current
        results = exam.results + [ExamResult(
            question   = question,
            selected   = exam.selected,
            is_correct = grade(exam.selected, question.answer),
            draw       = exam.canvas.export(),
        )]

        if not exam.is_last:
            nxt = exam.questions[exam.index + 1]
            self._transition(Exam(
                questions = exam.questions,
                canvas    = self._new_canvas(nxt),
                index     = exam.index + 1,
                results   = results,
            ))
            return Feedback(True)

        saved = self._save_exam_results(results)
        self.refresh()
        self._transition(ExamResults(results=results, saved=saved))
        if not saved:
            return Feedback(True, "Exam finished, but some results could not be saved.")
        return Feedback(True, "Exam finished.")

    def _save_exam_results(self, results: list[ExamResult]) -> bool:
        """Append each result to its question, one write at a time.

        Writes already made stay in place if a later one fails.
        """
        self.loading = True
        try:
            for res in results:
                current = self._find(res.question.id)
                if current is None:
                    logger.warning(f"Question {res.question.id} vanished before results were saved")
                    continue
                solution = res.to_solution()
                self.store.update(current.id, {
                    "solutions": [s.model_dump() for s in current.solutions] + [solution.model_dump()],
                    "level":     level_after(current.level, res.is_correct),
                })
            return True
        except StoreError as exc:
            logger.error(f"Error saving exam results: {exc}", exc_info=True)
            return False
        finally:
            self.loading = False

    # ── Snapshot ─────────────────────────────────────────────────────────────

    def snapshot(self) -> dict:
        """JSON-ready view of the session for the page."""
        mode = self.mode
        data: dict = {
            "mode":       type(mode).__name__,
            "loading":    self.loading,
            "pen_color":  self.pen_color,
            "exam_count": self.exam_count,
            "filter": {
                "subject": self.filter.subject,
                "topic":   self.filter.topic,
                "level":   self.filter.level,
            },
        }
        if isinstance(mode, Solving):
            data["question"] = mode.question.model_dump()
            data["selected"] = mode.selected
        elif isinstance(mode, ReviewingHistory):
            data["question"] = mode.question.model_dump()
        elif isinstance(mode, Exam):
            data["question"] = mode.current.model_dump(exclude={"answer", "solutions"})
            data["position"] = mode.index + 1
            data["total"]    = len(mode.questions)
            data["selected"] = mode.selected
        elif isinstance(mode, ExamResults):
            data["saved"]     = mode.saved
            data["correct"]   = mode.correct
            data["incorrect"] = mode.incorrect
            data["results"] = [
                {
                    "question_id": r.question.id,
                    "img_url":     r.question.img_url,
                    "answer":      r.question.answer,
                    "selected":    r.selected,
                    "is_correct":  r.is_correct,
                    "draw":        r.draw,
                }
                for r in mode.results
            ]
        if self.canvas is not None:
            data["canvas"] = {"width": self.canvas.width, "height": self.canvas.height}
        return data
