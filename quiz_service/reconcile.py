import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from . import crud
from .errors import NotFoundError, StorageError
from .grading import derive_percentage
from .models import is_row_id
from .questions import coerce_index

logger = logging.getLogger("quiz-service.reconcile")

MISSING_QUESTION_TEXT = "Question not found"


@dataclass(frozen=True)
class EnrichedResponse:
    question_id: int
    selected_answer: Any
    is_correct: bool
    question_text: str
    question_type: str | None
    options: list[str]
    correct_answer: Any
    marks: int


@dataclass(frozen=True)
class ReconciledAttempt:
    id: int
    quiz_id: int
    quiz_title: str
    subject: str | None
    score: int
    total_marks: int
    total_possible_score: int
    percentage: int
    time_taken: int
    completed_at: datetime
    responses: list[EnrichedResponse] = field(default_factory=list)
    persisted: bool = False


def parse_attempt_id(raw: Any) -> int:
    attempt_id = coerce_index(raw)
    if attempt_id is None or not is_row_id(attempt_id):
        raise NotFoundError("Quiz attempt not found")
    return attempt_id


def reconcile(db: Session, attempt_id: Any) -> ReconciledAttempt:
    attempt = crud.get_attempt(db, parse_attempt_id(attempt_id))
    if attempt is None:
        raise NotFoundError("Quiz attempt not found")

    quiz = crud.get_quiz(db, attempt.quiz_id)
    questions = {q.id: q for q in quiz.questions} if quiz is not None else {}

    # a deleted quiz leaves only the submission-time snapshot to go on
    total_possible = quiz.total_marks if quiz is not None else attempt.total_marks
    percentage = derive_percentage(attempt.score, total_possible)

    responses = []
    for r in attempt.responses:
        q = questions.get(r.question_id)
        responses.append(EnrichedResponse(
            question_id=r.question_id,
            selected_answer=r.selected_answer,
            is_correct=r.is_correct,
            question_text=q.text if q is not None else MISSING_QUESTION_TEXT,
            question_type=q.type if q is not None else r.question_type,
            options=list(q.options or []) if q is not None else [],
            correct_answer=q.correct_answer if q is not None else r.correct_answer,
            marks=q.marks if q is not None else 1,
        ))

    result = ReconciledAttempt(
        id=attempt.id,
        quiz_id=attempt.quiz_id,
        quiz_title=quiz.title if quiz is not None else attempt.quiz_title,
        subject=quiz.subject if quiz is not None else None,
        score=attempt.score,
        total_marks=total_possible,
        total_possible_score=total_possible,
        percentage=percentage,
        time_taken=attempt.time_taken,
        completed_at=attempt.completed_at,
        responses=responses,
    )
    if quiz is None:
        return result

    previous = (attempt.percentage, attempt.total_marks)
    try:
        crud.update_attempt_fields(db, attempt.id, percentage=percentage, total_marks=total_possible)
    except StorageError:
        logger.warning("Could not persist reconciled totals for attempt %s; serving computed values", result.id)
        return result

    if previous != (percentage, total_possible):
        logger.info(
            "Attempt %s corrected: percentage %s -> %s, total marks %s -> %s",
            result.id, previous[0], percentage, previous[1], total_possible,
        )
    return replace(result, persisted=True)
