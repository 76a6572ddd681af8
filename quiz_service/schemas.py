from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# Quiz definition
# Loosely typed: questions.validate_quiz collects the violations.
class QuestionIn(BaseModel):
    id: int | None = None
    type: Any = Field(default=None, description="MCQ | Fill | TrueFalse (legacy, stored as MCQ)")
    text: Any = ""
    options: list[Any] | None = None
    correct_answer: Any = None
    marks: Any = 1


class QuizIn(BaseModel):
    title: Any = ""
    subject: Any = ""
    duration: Any = None
    is_public: bool = True
    questions: list[QuestionIn] = Field(default_factory=list)


class QuestionOut(BaseModel):
    id: int
    type: str
    text: str
    options: list[str] | None = None
    correct_answer: Any = None  # only shown to the owner or an admin
    marks: int


class QuizSummaryOut(BaseModel):
    id: int
    title: str
    subject: str
    duration: int
    created_by: str
    is_public: bool
    created_at: datetime
    total_marks: int
    question_count: int


class QuizOut(QuizSummaryOut):
    questions: list[QuestionOut]


# Submission
class SubmitResponseIn(BaseModel):
    question_id: int | str
    selected_answer: Any = None


class SubmitQuizIn(BaseModel):
    responses: list[SubmitResponseIn]
    time_taken: float = Field(default=0, ge=0, description="Seconds spent on the attempt")


class GradedResponseOut(BaseModel):
    question_id: int
    selected_answer: Any = None
    is_correct: bool
    question_type: str
    correct_answer: Any = None


class SubmitQuizOut(BaseModel):
    attempt_id: int
    quiz_id: int
    user_id: str
    score: int
    total_marks: int
    total_questions: int
    percentage: int
    time_taken: int
    completed_at: datetime
    responses: list[GradedResponseOut]


# Results
class EnrichedResponseOut(BaseModel):
    question_id: int
    selected_answer: Any = None
    is_correct: bool
    question_text: str
    question_type: str | None = None
    options: list[str]
    correct_answer: Any = None
    marks: int


class AttemptResultOut(BaseModel):
    id: int
    quiz_id: int
    quiz_title: str
    subject: str | None = None
    score: int
    total_marks: int
    total_possible_score: int
    percentage: int
    time_taken: int
    completed_at: datetime
    responses: list[EnrichedResponseOut]


# Analytics
class SubjectPerformanceOut(BaseModel):
    attempts: int
    average_percentage: float


class ActivityOut(BaseModel):
    attempt_id: int
    quiz_id: int
    title: str
    subject: str | None = None
    score: int
    total_marks: int
    percentage: int
    completed_at: datetime


class AnalyticsOut(BaseModel):
    total_attempts: int
    has_attempts: bool
    average_percentage: float
    subject_performance: dict[str, SubjectPerformanceOut]
    recent_activity: list[ActivityOut]
    message: str | None = None


class HistoryQuizOut(BaseModel):
    id: int
    title: str
    subject: str
    duration: int


class HistoryItemOut(BaseModel):
    id: int
    user_id: str
    quiz: HistoryQuizOut | None = None
    score: int
    total_marks: int
    percentage: int
    completed_at: datetime
    time_taken: int


class ScoreSummaryOut(BaseModel):
    total_attempts: int
    has_attempts: bool
    average_score: float
    average_percentage: float
    total_score: float
    total_possible_marks: float
    message: str | None = None
