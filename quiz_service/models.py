from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from shared.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Largest value a signed 64-bit INTEGER primary key can hold.
MAX_ROW_ID = 2**63 - 1


def is_row_id(value: int) -> bool:
    return 1 <= value <= MAX_ROW_ID


class Quiz(Base):
    __tablename__ = "quiz"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    subject: Mapped[str] = mapped_column(String(100), index=True)
    duration: Mapped[int] = mapped_column(Integer, default=1)  # minutes
    created_by: Mapped[str] = mapped_column(String(64), index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    questions: Mapped[list["Question"]] = relationship(
        back_populates="quiz",
        order_by="Question.position",
        cascade="all, delete-orphan",
    )

    @property
    def total_marks(self) -> int:
        return sum(q.marks for q in self.questions)

    @property
    def question_count(self) -> int:
        return len(self.questions)


class Question(Base):
    __tablename__ = "question"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quiz_id: Mapped[int] = mapped_column(Integer, ForeignKey("quiz.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    type: Mapped[str] = mapped_column(String(20))  # MCQ | Fill
    text: Mapped[str] = mapped_column(Text)
    options: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    correct_answer: Mapped[Any] = mapped_column(JSON)  # option index for MCQ, text for Fill
    marks: Mapped[int] = mapped_column(Integer, default=1)

    quiz: Mapped[Quiz] = relationship(back_populates="questions")


class QuizAttempt(Base):
    __tablename__ = "quiz_attempt"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # no relationship on purpose: a quiz row may vanish while its attempts are read
    quiz_id: Mapped[int] = mapped_column(Integer, ForeignKey("quiz.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    username: Mapped[str] = mapped_column(String(255), default="")
    quiz_title: Mapped[str] = mapped_column(String(255), default="")
    score: Mapped[int] = mapped_column(Integer, default=0)
    total_questions: Mapped[int] = mapped_column(Integer, default=0)
    total_marks: Mapped[int] = mapped_column(Integer, default=0)  # snapshot at submission
    percentage: Mapped[int] = mapped_column(Integer, default=0)  # cache, see reconcile.py
    time_taken: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    completed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    responses: Mapped[list["AttemptResponse"]] = relationship(
        order_by="AttemptResponse.position",
        cascade="all, delete-orphan",
    )


class AttemptResponse(Base):
    __tablename__ = "attempt_response"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    attempt_id: Mapped[int] = mapped_column(Integer, ForeignKey("quiz_attempt.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    question_id: Mapped[int] = mapped_column(Integer, index=True)
    selected_answer: Mapped[Any] = mapped_column(JSON, nullable=True)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)
    question_type: Mapped[str] = mapped_column(String(20))
    correct_answer: Mapped[Any] = mapped_column(JSON, nullable=True)  # snapshot
