import logging
from datetime import datetime
from functools import wraps

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .errors import MalformedInputError, StorageError
from .grading import GradedResult
from .models import AttemptResponse, Question, Quiz, QuizAttempt, is_row_id, utcnow
from .questions import NormalizedQuestion, NormalizedQuiz

logger = logging.getLogger("quiz-service.crud")

SORT_OPTIONS = {
    "a-z": Quiz.title.asc(),
    "z-a": Quiz.title.desc(),
    "newest": Quiz.created_at.desc(),
    "oldest": Quiz.created_at.asc(),
    "duration-asc": Quiz.duration.asc(),
    "duration-desc": Quiz.duration.desc(),
}


def storage_guard(fn):
    """Roll back and re-raise SQLAlchemy failures as StorageError."""
    @wraps(fn)
    def wrapper(db: Session, *args, **kwargs):
        try:
            return fn(db, *args, **kwargs)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Storage failure in %s: %s", fn.__name__, e)
            raise StorageError(f"Storage failure in {fn.__name__}") from e
    return wrapper


# -------------------------
# Quiz store
# -------------------------

def _question_row(q: NormalizedQuestion, position: int) -> Question:
    return Question(
        position=position,
        type=q.type.value,
        text=q.text,
        options=q.options,
        correct_answer=q.correct_answer,
        marks=q.marks,
    )


@storage_guard
def create_quiz(db: Session, owner_id: str, data: NormalizedQuiz) -> Quiz:
    quiz = Quiz(
        title=data.title,
        subject=data.subject,
        duration=data.duration,
        created_by=owner_id,
        is_public=data.is_public,
        questions=[_question_row(q, i) for i, q in enumerate(data.questions)],
    )
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    return quiz


@storage_guard
def get_quiz(db: Session, quiz_id: int) -> Quiz | None:
    if not is_row_id(quiz_id):
        return None
    stmt = select(Quiz).options(selectinload(Quiz.questions)).where(Quiz.id == quiz_id)
    return db.execute(stmt).scalar_one_or_none()


@storage_guard
def list_quizzes(
    db: Session,
    subject: str | None = None,
    search: str | None = None,
    sort: str | None = None,
    public_only: bool = True,
) -> list[Quiz]:
    order = SORT_OPTIONS["newest"]
    if sort:
        key = sort.strip().lower()
        if key not in SORT_OPTIONS:
            raise MalformedInputError(
                f"Invalid sort option. Valid options are: {', '.join(SORT_OPTIONS)}"
            )
        order = SORT_OPTIONS[key]

    stmt = select(Quiz).options(selectinload(Quiz.questions))
    if public_only:
        stmt = stmt.where(Quiz.is_public.is_(True))
    if subject and subject != "all":
        stmt = stmt.where(Quiz.subject == subject)
    if search:
        stmt = stmt.where(Quiz.title.ilike(f"%{search}%"))
    return list(db.execute(stmt.order_by(order, Quiz.id.asc())).scalars())


@storage_guard
def list_quizzes_by_owner(db: Session, owner_id: str) -> list[Quiz]:
    stmt = (
        select(Quiz)
        .options(selectinload(Quiz.questions))
        .where(Quiz.created_by == owner_id)
        .order_by(Quiz.created_at.desc(), Quiz.id.desc())
    )
    return list(db.execute(stmt).scalars())


@storage_guard
def list_subjects(db: Session) -> list[str]:
    rows = db.execute(select(Quiz.subject).distinct().order_by(Quiz.subject)).scalars()
    return list(rows)


@storage_guard
def update_quiz(db: Session, quiz: Quiz, data: NormalizedQuiz) -> Quiz:
    """
    Replace the quiz definition. Questions carrying the id of an existing
    question are updated in place (so stored attempts keep resolving them),
    new ones are appended, omitted ones are removed.
    """
    quiz.title = data.title
    quiz.subject = data.subject
    quiz.duration = data.duration
    quiz.is_public = data.is_public

    existing = {q.id: q for q in quiz.questions}
    kept: list[Question] = []
    for position, q in enumerate(data.questions):
        row = existing.pop(q.id, None) if q.id is not None else None
        if row is None:
            row = _question_row(q, position)
        else:
            row.position = position
            row.type = q.type.value
            row.text = q.text
            row.options = q.options
            row.correct_answer = q.correct_answer
            row.marks = q.marks
        kept.append(row)

    quiz.questions = kept
    db.commit()
    db.refresh(quiz)
    return quiz


@storage_guard
def delete_quiz_row(db: Session, quiz: Quiz) -> None:
    db.delete(quiz)
    db.commit()


@storage_guard
def delete_quizzes_by_owner(db: Session, owner_id: str) -> int:
    quizzes = list(db.execute(select(Quiz).where(Quiz.created_by == owner_id)).scalars())
    for quiz in quizzes:
        db.delete(quiz)
    db.commit()
    return len(quizzes)


@storage_guard
def count_quizzes(db: Session) -> int:
    return db.execute(select(func.count(Quiz.id))).scalar_one()


# -------------------------
# Attempt store
# -------------------------

@storage_guard
def create_attempt(
    db: Session,
    *,
    quiz_id: int,
    user_id: str,
    username: str,
    quiz_title: str,
    result: GradedResult,
    time_taken: int,
    completed_at: datetime | None = None,
) -> QuizAttempt:
    attempt = QuizAttempt(
        quiz_id=quiz_id,
        user_id=user_id,
        username=username,
        quiz_title=quiz_title,
        score=result.score,
        total_questions=result.total_questions,
        total_marks=result.total_marks,
        percentage=result.percentage,
        time_taken=time_taken,
        completed_at=completed_at or utcnow(),
        responses=[
            AttemptResponse(
                position=i,
                question_id=r.question_id,
                selected_answer=r.selected_answer,
                is_correct=r.is_correct,
                question_type=r.question_type,
                correct_answer=r.correct_answer,
            )
            for i, r in enumerate(result.responses)
        ],
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


@storage_guard
def get_attempt(db: Session, attempt_id: int) -> QuizAttempt | None:
    if not is_row_id(attempt_id):
        return None
    stmt = (
        select(QuizAttempt)
        .options(selectinload(QuizAttempt.responses))
        .where(QuizAttempt.id == attempt_id)
    )
    return db.execute(stmt).scalar_one_or_none()


@storage_guard
def list_attempts_for_user(db: Session, user_id: str, limit: int | None = None) -> list[QuizAttempt]:
    stmt = (
        select(QuizAttempt)
        .where(QuizAttempt.user_id == user_id)
        .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    return list(db.execute(stmt).scalars())


@storage_guard
def list_recent_attempts(db: Session, limit: int = 10) -> list[QuizAttempt]:
    stmt = select(QuizAttempt).order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc()).limit(limit)
    return list(db.execute(stmt).scalars())


@storage_guard
def update_attempt_fields(db: Session, attempt_id: int, **fields) -> None:
    attempt = db.get(QuizAttempt, attempt_id)
    if attempt is None:
        return
    for name, value in fields.items():
        if hasattr(attempt, name):
            setattr(attempt, name, value)
    db.commit()


@storage_guard
def delete_attempts_where(db: Session, *criteria) -> int:
    """Delete attempts (and their responses) matching SQLAlchemy criteria on QuizAttempt."""
    ids = list(db.execute(select(QuizAttempt.id).where(*criteria)).scalars())
    if not ids:
        return 0
    db.execute(delete(AttemptResponse).where(AttemptResponse.attempt_id.in_(ids)))
    db.execute(delete(QuizAttempt).where(QuizAttempt.id.in_(ids)))
    db.commit()
    return len(ids)


@storage_guard
def get_quizzes_by_ids(db: Session, quiz_ids: set[int]) -> dict[int, Quiz]:
    if not quiz_ids:
        return {}
    stmt = select(Quiz).options(selectinload(Quiz.questions)).where(Quiz.id.in_(quiz_ids))
    return {q.id: q for q in db.execute(stmt).scalars()}


@storage_guard
def attempt_totals(db: Session) -> dict:
    row = db.execute(
        select(
            func.count(QuizAttempt.id),
            func.count(func.distinct(QuizAttempt.user_id)),
        )
    ).one()
    return {"attempts": int(row[0] or 0), "users": int(row[1] or 0)}
