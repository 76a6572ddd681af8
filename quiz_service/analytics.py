import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from . import crud
from .grading import derive_percentage
from .models import Quiz, QuizAttempt

logger = logging.getLogger("quiz-service.analytics")

RECENT_ACTIVITY_LIMIT = 5
NO_ATTEMPTS_MESSAGE = "No quiz attempts found for this user"


@dataclass(frozen=True)
class SubjectPerformance:
    attempts: int
    average_percentage: float


@dataclass(frozen=True)
class ActivityItem:
    attempt_id: int
    quiz_id: int
    title: str
    subject: str | None
    score: int
    total_marks: int
    percentage: int
    completed_at: datetime


@dataclass(frozen=True)
class AnalyticsSummary:
    total_attempts: int
    has_attempts: bool
    average_percentage: float
    subject_performance: dict[str, SubjectPerformance] = field(default_factory=dict)
    recent_activity: list[ActivityItem] = field(default_factory=list)
    message: str | None = None


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def attempt_percentage(attempt: QuizAttempt) -> int:
    return derive_percentage(attempt.score, attempt.total_marks)


def _activity(attempt: QuizAttempt, quiz: Quiz | None) -> ActivityItem:
    return ActivityItem(
        attempt_id=attempt.id,
        quiz_id=attempt.quiz_id,
        title=quiz.title if quiz is not None else attempt.quiz_title,
        subject=quiz.subject if quiz is not None else None,
        score=attempt.score,
        total_marks=attempt.total_marks,
        percentage=attempt_percentage(attempt),
        completed_at=attempt.completed_at,
    )


def aggregate(db: Session, user_id: str) -> AnalyticsSummary:
    attempts = crud.list_attempts_for_user(db, user_id)  # newest first
    if not attempts:
        return AnalyticsSummary(
            total_attempts=0,
            has_attempts=False,
            average_percentage=0.0,
            message=NO_ATTEMPTS_MESSAGE,
        )

    quizzes = crud.get_quizzes_by_ids(db, {a.quiz_id for a in attempts})

    by_subject: dict[str, list[int]] = defaultdict(list)
    orphaned = 0
    for a in attempts:
        quiz = quizzes.get(a.quiz_id)
        if quiz is None:
            orphaned += 1
            continue
        by_subject[quiz.subject].append(attempt_percentage(a))
    if orphaned:
        logger.info("User %s has %s attempts on deleted quizzes; left out of subject breakdown", user_id, orphaned)

    return AnalyticsSummary(
        total_attempts=len(attempts),
        has_attempts=True,
        average_percentage=_mean([attempt_percentage(a) for a in attempts]),
        subject_performance={
            subject: SubjectPerformance(attempts=len(pcts), average_percentage=_mean(pcts))
            for subject, pcts in sorted(by_subject.items())
        },
        recent_activity=[
            _activity(a, quizzes.get(a.quiz_id)) for a in attempts[:RECENT_ACTIVITY_LIMIT]
        ],
    )


def history(db: Session, user_id: str) -> list[dict]:
    attempts = crud.list_attempts_for_user(db, user_id)
    quizzes = crud.get_quizzes_by_ids(db, {a.quiz_id for a in attempts})

    out = []
    for a in attempts:
        quiz = quizzes.get(a.quiz_id)
        out.append({
            "id": a.id,
            "user_id": a.user_id,
            "quiz": {
                "id": quiz.id,
                "title": quiz.title or "Untitled Quiz",
                "subject": quiz.subject or "General",
                "duration": quiz.duration or 0,
            } if quiz is not None else None,
            "score": a.score,
            "total_marks": a.total_marks,
            "percentage": attempt_percentage(a),
            "completed_at": a.completed_at,
            "time_taken": a.time_taken,
        })
    return out


def score_summary(db: Session, user_id: str) -> dict:
    """Raw-score view: totals measured against the quizzes' current marks."""
    attempts = crud.list_attempts_for_user(db, user_id)
    if not attempts:
        return {
            "total_attempts": 0,
            "has_attempts": False,
            "average_score": 0.0,
            "average_percentage": 0.0,
            "total_score": 0.0,
            "total_possible_marks": 0.0,
            "message": NO_ATTEMPTS_MESSAGE,
        }

    quizzes = crud.get_quizzes_by_ids(db, {a.quiz_id for a in attempts})
    total_score = sum(a.score or 0 for a in attempts)
    total_possible = sum(
        quizzes[a.quiz_id].total_marks for a in attempts if a.quiz_id in quizzes
    )
    average_percentage = total_score / total_possible * 100 if total_possible > 0 else 0.0

    return {
        "total_attempts": len(attempts),
        "has_attempts": True,
        "average_score": round(total_score / len(attempts), 2),
        "average_percentage": round(average_percentage, 2),
        "total_score": float(total_score),
        "total_possible_marks": float(total_possible),
        "message": None,
    }


def system_stats(db: Session, recent_limit: int = 10) -> dict:
    totals = crud.attempt_totals(db)
    recent = crud.list_recent_attempts(db, limit=recent_limit)
    return {
        "counts": {
            "quizzes": crud.count_quizzes(db),
            "attempts": totals["attempts"],
            "users": totals["users"],
        },
        "recent_attempts": [
            {
                "id": a.id,
                "user_id": a.user_id,
                "username": a.username,
                "quiz_id": a.quiz_id,
                "quiz_title": a.quiz_title,
                "score": a.score,
                "total_questions": a.total_questions,
                "percentage": attempt_percentage(a),
                "completed_at": a.completed_at,
            }
            for a in recent
        ],
    }
