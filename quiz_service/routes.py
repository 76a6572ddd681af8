from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session
from shared.database import db_dependency

from . import analytics, crud
from .attempts import (
    Identity,
    delete_quiz,
    delete_user_data,
    ensure_can_modify,
    require_user,
    submit_attempt,
)
from .errors import NotFoundError, PermissionDeniedError
from .models import Quiz
from .questions import validate_quiz
from .reconcile import reconcile
from .schemas import (
    AnalyticsOut,
    AttemptResultOut,
    HistoryItemOut,
    QuestionOut,
    QuizIn,
    QuizOut,
    QuizSummaryOut,
    ScoreSummaryOut,
    SubmitQuizIn,
    SubmitQuizOut,
)


def current_identity(request: Request) -> Identity:
    # set by main.identity_middleware from the gateway's X-User-* headers
    user = getattr(request.state, "user", None)
    if not user or not user.get("sub"):
        return Identity()
    return Identity(
        user_id=str(user["sub"]),
        email=str(user.get("email") or ""),
        role=str(user.get("role") or "user"),
    )


def _summary(quiz: Quiz) -> dict:
    return dict(
        id=quiz.id,
        title=quiz.title,
        subject=quiz.subject,
        duration=quiz.duration,
        created_by=quiz.created_by,
        is_public=quiz.is_public,
        created_at=quiz.created_at,
        total_marks=quiz.total_marks,
        question_count=quiz.question_count,
    )


def quiz_out(quiz: Quiz, include_answers: bool) -> QuizOut:
    return QuizOut(
        **_summary(quiz),
        questions=[
            QuestionOut(
                id=q.id,
                type=q.type,
                text=q.text,
                options=q.options,
                correct_answer=q.correct_answer if include_answers else None,
                marks=q.marks,
            )
            for q in quiz.questions
        ],
    )


def _can_see_answers(quiz: Quiz, identity: Identity) -> bool:
    return identity.is_admin or (identity.is_authenticated and quiz.created_by == identity.user_id)


def build_router(SessionLocal):
    router = APIRouter()
    get_db = db_dependency(SessionLocal)

    # -------------------------
    # Quizzes
    # -------------------------

    @router.post("/quizzes", response_model=QuizOut, status_code=201)
    def create_q(payload: QuizIn, request: Request, db: Session = Depends(get_db)):
        owner = require_user(current_identity(request))
        data = validate_quiz(payload.model_dump())
        quiz = crud.create_quiz(db, owner, data)
        return quiz_out(quiz, include_answers=True)

    @router.get("/quizzes", response_model=list[QuizSummaryOut])
    def list_qs(
        subject: str | None = Query(default=None),
        search: str | None = Query(default=None),
        sort: str | None = Query(default=None),
        db: Session = Depends(get_db),
    ):
        return [QuizSummaryOut(**_summary(q)) for q in crud.list_quizzes(db, subject, search, sort)]

    @router.get("/quizzes/subjects", response_model=list[str])
    def subjects(db: Session = Depends(get_db)):
        return crud.list_subjects(db)

    @router.get("/quizzes/{quiz_id}", response_model=QuizOut)
    def get_q(quiz_id: int, request: Request, db: Session = Depends(get_db)):
        quiz = crud.get_quiz(db, quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        return quiz_out(quiz, include_answers=_can_see_answers(quiz, current_identity(request)))

    @router.put("/quizzes/{quiz_id}", response_model=QuizOut)
    def update_q(quiz_id: int, payload: QuizIn, request: Request, db: Session = Depends(get_db)):
        quiz = crud.get_quiz(db, quiz_id)
        if not quiz:
            raise NotFoundError("Quiz not found")
        ensure_can_modify(quiz, current_identity(request))
        data = validate_quiz(payload.model_dump())
        return quiz_out(crud.update_quiz(db, quiz, data), include_answers=True)

    @router.delete("/quizzes/{quiz_id}", response_model=dict)
    def delete_q(quiz_id: int, request: Request, db: Session = Depends(get_db)):
        return delete_quiz(db, quiz_id, current_identity(request))

    # -------------------------
    # Attempts
    # -------------------------

    @router.post("/quizzes/{quiz_id}/attempts", response_model=SubmitQuizOut, status_code=201)
    def submit(quiz_id: int, payload: SubmitQuizIn, request: Request, db: Session = Depends(get_db)):
        sub = submit_attempt(
            db,
            quiz_id,
            [r.model_dump() for r in payload.responses],
            payload.time_taken,
            current_identity(request),
        )
        return SubmitQuizOut(
            attempt_id=sub.attempt.id,
            quiz_id=sub.attempt.quiz_id,
            user_id=sub.attempt.user_id,
            score=sub.result.score,
            total_marks=sub.result.total_marks,
            total_questions=sub.result.total_questions,
            percentage=sub.result.percentage,
            time_taken=sub.attempt.time_taken,
            completed_at=sub.attempt.completed_at,
            responses=[asdict(r) for r in sub.result.responses],
        )

    @router.get("/attempts/{attempt_id}/results", response_model=AttemptResultOut)
    def results(attempt_id: str, db: Session = Depends(get_db)):
        return AttemptResultOut.model_validate(asdict(reconcile(db, attempt_id)))

    # -------------------------
    # Current user
    # -------------------------

    @router.get("/users/me/history", response_model=list[HistoryItemOut])
    def my_history(request: Request, db: Session = Depends(get_db)):
        uid = require_user(current_identity(request))
        return analytics.history(db, uid)

    @router.get("/users/me/analytics", response_model=AnalyticsOut)
    def my_analytics(request: Request, db: Session = Depends(get_db)):
        uid = require_user(current_identity(request))
        return AnalyticsOut.model_validate(asdict(analytics.aggregate(db, uid)))

    @router.get("/users/me/average-score", response_model=ScoreSummaryOut)
    def my_average(request: Request, db: Session = Depends(get_db)):
        uid = require_user(current_identity(request))
        return analytics.score_summary(db, uid)

    @router.get("/users/me/quizzes", response_model=list[QuizSummaryOut])
    def my_quizzes(request: Request, db: Session = Depends(get_db)):
        uid = require_user(current_identity(request))
        return [QuizSummaryOut(**_summary(q)) for q in crud.list_quizzes_by_owner(db, uid)]

    # -------------------------
    # Admin
    # -------------------------

    def require_admin(request: Request) -> Identity:
        identity = current_identity(request)
        require_user(identity)
        if not identity.is_admin:
            raise PermissionDeniedError("Admin access required")
        return identity

    @router.get("/admin/stats", response_model=dict)
    def stats(request: Request, db: Session = Depends(get_db)):
        require_admin(request)
        return analytics.system_stats(db)

    @router.delete("/admin/users/{user_id}/data", response_model=dict)
    def wipe_user(user_id: str, request: Request, db: Session = Depends(get_db)):
        require_admin(request)
        return delete_user_data(db, user_id)

    return router
