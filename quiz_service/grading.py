"""Grades a submission against a quiz snapshot. Pure: no database, clock or randomness."""
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from .errors import NotFoundError
from .questions import (
    FillBlankQuestion,
    MultipleChoiceQuestion,
    QuizSnapshot,
    UnsupportedQuestion,
    coerce_index,
)

logger = logging.getLogger("quiz-service.grading")


@dataclass(frozen=True)
class GradedResponse:
    question_id: int
    selected_answer: Any
    is_correct: bool
    question_type: str
    correct_answer: Any


@dataclass(frozen=True)
class GradedResult:
    score: int
    total_marks: int
    total_questions: int
    percentage: int
    responses: list[GradedResponse] = field(default_factory=list)


def derive_percentage(score: float, total_marks: float) -> int:
    """round(score / total_marks * 100), half-up; 0 for a zero divisor or a non-finite result."""
    if not total_marks or total_marks <= 0:
        return 0
    value = score / total_marks * 100
    if not math.isfinite(value):
        return 0
    return int(math.floor(value + 0.5))


def normalize_text(value: Any) -> str:
    return str(value).strip().lower()


def check_multiple_choice(question: MultipleChoiceQuestion, answer: Any) -> bool:
    selected = coerce_index(answer)
    return selected is not None and selected == question.correct_answer


def check_fill_blank(question: FillBlankQuestion, answer: Any) -> bool:
    if answer is None or not question.correct_answer:
        return False
    return normalize_text(answer) == normalize_text(question.correct_answer)


def is_correct(question, answer: Any) -> bool:
    if isinstance(question, MultipleChoiceQuestion):
        return check_multiple_choice(question, answer)
    if isinstance(question, FillBlankQuestion):
        return check_fill_blank(question, answer)
    if isinstance(question, UnsupportedQuestion):
        logger.warning("Question %s has unsupported type %r; graded incorrect", question.id, question.raw_type)
        return False
    raise TypeError(f"Unhandled question variant: {type(question).__name__}")


def _type_tag(question) -> str:
    if isinstance(question, UnsupportedQuestion):
        return question.raw_type
    return question.type.value


def grade(quiz: QuizSnapshot | None, responses: Iterable[Mapping[str, Any]]) -> GradedResult:
    if quiz is None:
        raise NotFoundError("Quiz not found")

    by_id = {str(q.id): q for q in quiz.questions}
    score = 0
    graded: list[GradedResponse] = []

    for r in responses:
        question = by_id.get(str(r.get("question_id")))
        if question is None:
            logger.debug("Dropping response for unknown question %r", r.get("question_id"))
            continue

        answer = r.get("selected_answer")
        ok = is_correct(question, answer)
        if ok:
            score += question.marks
        logger.debug("Question %s answer=%r correct=%s", question.id, answer, ok)

        graded.append(GradedResponse(
            question_id=question.id,
            selected_answer=answer,
            is_correct=ok,
            question_type=_type_tag(question),
            correct_answer=question.correct_answer,
        ))

    total_marks = quiz.total_marks
    return GradedResult(
        score=score,
        total_marks=total_marks,
        total_questions=quiz.question_count,
        percentage=derive_percentage(score, total_marks),
        responses=graded,
    )
