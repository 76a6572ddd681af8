import logging
import uuid
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy.orm import Session

from . import crud
from .errors import (
    AuthenticationRequiredError,
    MalformedInputError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from .grading import GradedResult, grade
from .models import Quiz, QuizAttempt
from .questions import snapshot_quiz

logger = logging.getLogger("quiz-service.attempts")

ANONYMOUS_PREFIX = "anonymous-"


@dataclass(frozen=True)
class Identity:
    user_id: str | None = None
    email: str = ""
    role: str = "user"

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.role == "admin"


def require_user(identity: Identity) -> str:
    if not identity.is_authenticated:
        raise AuthenticationRequiredError()
    return identity.user_id


def resolve_user_id(identity: Identity) -> str:
    """Authenticated id, or a fresh synthetic id for an anonymous attempt."""
    if identity.is_authenticated:
        return identity.user_id
    return f"{ANONYMOUS_PREFIX}{uuid.uuid4().hex}"


def parse_submission(responses: Any, time_taken: Any = 0) -> tuple[list[Mapping[str, Any]], int]:
    if not isinstance(responses, list):
        raise MalformedInputError("Valid responses array is required")
    for i, r in enumerate(responses):
        if not isinstance(r, Mapping) or "question_id" not in r:
            raise MalformedInputError(f"responses[{i}] must be an object with a question_id")

    if time_taken is None:
        time_taken = 0
    if isinstance(time_taken, bool) or not isinstance(time_taken, (int, float)) or time_taken < 0:
        raise MalformedInputError("time_taken must be a non-negative number of seconds")
    return responses, int(time_taken)


@dataclass
class Submission:
    attempt: QuizAttempt
    result: GradedResult


def submit_attempt(
    db: Session,
    quiz_id: int,
    responses: Any,
    time_taken: Any,
    identity: Identity,
) -> Submission:
    responses, seconds = parse_submission(responses, time_taken)

    quiz = crud.get_quiz(db, quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")

    result = grade(snapshot_quiz(quiz), responses)
    user_id = resolve_user_id(identity)

    attempt = crud.create_attempt(
        db,
        quiz_id=quiz.id,
        user_id=user_id,
        username=identity.email,
        quiz_title=quiz.title,
        result=result,
        time_taken=seconds,
    )
    logger.info(
        "Attempt %s on quiz %s by %s: %s/%s (%s%%), %s of %s responses graded",
        attempt.id, quiz.id, user_id, result.score, result.total_marks,
        result.percentage, len(result.responses), len(responses),
    )
    return Submission(attempt=attempt, result=result)


# -------------------------
# Ownership + cascades
# -------------------------

def ensure_can_modify(quiz: Quiz, identity: Identity) -> None:
    require_user(identity)
    if quiz.created_by != identity.user_id and not identity.is_admin:
        raise PermissionDeniedError("Not authorized to modify this quiz")


def delete_quiz(db: Session, quiz_id: int, identity: Identity) -> dict:
    quiz = crud.get_quiz(db, quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")
    ensure_can_modify(quiz, identity)

    # dependents first; a failure here leaves the quiz in place
    attempts_deleted = crud.delete_attempts_where(db, QuizAttempt.quiz_id == quiz.id)
    crud.delete_quiz_row(db, quiz)

    logger.info("Deleted quiz %s and %s attempts", quiz_id, attempts_deleted)
    return {"deleted": True, "attempts_deleted": attempts_deleted}


def delete_user_data(db: Session, user_id: str) -> dict:
    """Remove a user's quizzes, the attempts on them, and the user's own attempts."""
    owned_ids = [q.id for q in crud.list_quizzes_by_owner(db, user_id)]
    try:
        attempts_deleted = 0
        if owned_ids:
            attempts_deleted += crud.delete_attempts_where(db, QuizAttempt.quiz_id.in_(owned_ids))
        attempts_deleted += crud.delete_attempts_where(db, QuizAttempt.user_id == user_id)
    except StorageError:
        logger.error("Cleanup of attempts for user %s failed; quizzes kept", user_id)
        raise

    quizzes_deleted = crud.delete_quizzes_by_owner(db, user_id)
    logger.info(
        "Deleted data for user %s: %s quizzes, %s attempts",
        user_id, quizzes_deleted, attempts_deleted,
    )
    return {"quizzes_deleted": quizzes_deleted, "attempts_deleted": attempts_deleted}
