from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union

from .errors import ValidationError

MCQ_OPTION_COUNT = 4
TRUE_FALSE_OPTIONS = ["True", "False"]


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MCQ"
    FILL_BLANK = "Fill"


LEGACY_TRUE_FALSE = "TrueFalse"


# ----------------------------
# Grading-side variants
# ----------------------------

@dataclass(frozen=True)
class MultipleChoiceQuestion:
    id: int
    text: str
    options: tuple[str, ...]
    correct_answer: int
    marks: int = 1

    @property
    def type(self) -> QuestionType:
        return QuestionType.MULTIPLE_CHOICE


@dataclass(frozen=True)
class FillBlankQuestion:
    id: int
    text: str
    correct_answer: str
    marks: int = 1

    @property
    def type(self) -> QuestionType:
        return QuestionType.FILL_BLANK


@dataclass(frozen=True)
class UnsupportedQuestion:
    # stored row with a type tag this service does not grade
    id: int
    text: str
    raw_type: str
    correct_answer: Any
    marks: int = 1


QuestionVariant = Union[MultipleChoiceQuestion, FillBlankQuestion]


@dataclass(frozen=True)
class QuizSnapshot:
    id: int
    title: str
    subject: str
    questions: tuple[Union[QuestionVariant, UnsupportedQuestion], ...] = ()

    @property
    def total_marks(self) -> int:
        return sum(q.marks for q in self.questions)

    @property
    def question_count(self) -> int:
        return len(self.questions)


def _marks_or_default(value: Any) -> int:
    return value if isinstance(value, int) and value > 0 else 1


def snapshot_question(row) -> Union[QuestionVariant, UnsupportedQuestion]:
    marks = _marks_or_default(row.marks)
    if row.type == QuestionType.MULTIPLE_CHOICE.value:
        correct = coerce_index(row.correct_answer)
        return MultipleChoiceQuestion(
            id=row.id,
            text=row.text,
            options=tuple(row.options or ()),
            correct_answer=-1 if correct is None else correct,
            marks=marks,
        )
    if row.type == QuestionType.FILL_BLANK.value:
        return FillBlankQuestion(
            id=row.id,
            text=row.text,
            correct_answer="" if row.correct_answer is None else str(row.correct_answer),
            marks=marks,
        )
    return UnsupportedQuestion(
        id=row.id, text=row.text, raw_type=str(row.type), correct_answer=row.correct_answer, marks=marks
    )


def snapshot_quiz(row) -> QuizSnapshot:
    return QuizSnapshot(
        id=row.id,
        title=row.title,
        subject=row.subject,
        questions=tuple(snapshot_question(q) for q in row.questions),
    )


# ----------------------------
# Validation / normalization
# ----------------------------

def coerce_index(value: Any) -> int | None:
    """Integer value of an option index given as int, integral float or numeric string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _true_false_index(value: Any) -> int | None:
    if isinstance(value, bool):
        return 0 if value else 1
    if isinstance(value, str):
        s = value.strip().lower()
        if s == "true":
            return 0
        if s == "false":
            return 1
        return None
    # already an index (e.g. re-saving a folded question)
    idx = coerce_index(value)
    return idx if idx in (0, 1) else None


@dataclass
class NormalizedQuestion:
    type: QuestionType
    text: str
    options: list[str] | None
    correct_answer: Any
    marks: int
    id: int | None = None


@dataclass
class NormalizedQuiz:
    title: str
    subject: str
    duration: int
    is_public: bool
    questions: list[NormalizedQuestion] = field(default_factory=list)


def _pad_options(options: Any) -> list[str]:
    if not options:
        return [""] * MCQ_OPTION_COUNT
    opts = ["" if o is None else str(o) for o in list(options)[:MCQ_OPTION_COUNT]]
    while len(opts) < MCQ_OPTION_COUNT:
        opts.append("")
    return opts


def normalize_question(raw: Mapping[str, Any], index: int = 0) -> tuple[NormalizedQuestion | None, list[str]]:
    """
    Normalize one question payload.

    Returns (question, []) on success or (None, violations) when the question
    cannot be accepted. Violations are prefixed with `questions[<index>]`.
    """
    prefix = f"questions[{index}]"
    errors: list[str] = []

    qtype = str(raw.get("type") or "").strip()
    text = str(raw.get("text") or "").strip()
    marks = raw.get("marks", 1)
    if marks is None:
        marks = 1
    correct = raw.get("correct_answer")
    options: list[str] | None = None

    if not text:
        errors.append(f"{prefix}.text: question text is required")
    if isinstance(marks, bool) or not isinstance(marks, int) or marks < 1:
        errors.append(f"{prefix}.marks: marks must be an integer of at least 1")

    if qtype == LEGACY_TRUE_FALSE:
        qtype = QuestionType.MULTIPLE_CHOICE.value
        options = list(TRUE_FALSE_OPTIONS)
        correct = _true_false_index(correct)
        if correct is None:
            errors.append(f"{prefix}.correct_answer: True/False answer must be true or false")
    elif qtype == QuestionType.MULTIPLE_CHOICE.value:
        options = _pad_options(raw.get("options"))
        correct = coerce_index(correct)
        if correct is None or not 0 <= correct < len(options):
            errors.append(
                f"{prefix}.correct_answer: must be a valid option index (0-{len(options) - 1})"
            )
    elif qtype == QuestionType.FILL_BLANK.value:
        if not isinstance(correct, str) or not correct.strip():
            errors.append(f"{prefix}.correct_answer: fill questions need a non-empty answer")
        else:
            correct = correct.strip()
    else:
        errors.append(f"{prefix}.type: unsupported question type '{qtype}'")

    if errors:
        return None, errors

    raw_id = raw.get("id")
    return NormalizedQuestion(
        type=QuestionType(qtype),
        text=text,
        options=options,
        correct_answer=correct,
        marks=marks,
        id=coerce_index(raw_id) if raw_id is not None else None,
    ), []


def validate_quiz(payload: Mapping[str, Any]) -> NormalizedQuiz:
    errors: list[str] = []

    title = str(payload.get("title") or "").strip()
    subject = str(payload.get("subject") or "").strip()
    duration = payload.get("duration")
    questions = payload.get("questions") or []

    if not title:
        errors.append("title: please provide a quiz title")
    if not subject:
        errors.append("subject: please provide a subject")
    if isinstance(duration, bool) or not isinstance(duration, int) or duration < 1:
        errors.append("duration: duration must be at least 1 minute")
    if not questions:
        errors.append("questions: at least one question is required")

    normalized: list[NormalizedQuestion] = []
    for i, raw in enumerate(questions):
        if not isinstance(raw, Mapping):
            errors.append(f"questions[{i}]: question must be an object")
            continue
        q, q_errors = normalize_question(raw, i)
        errors.extend(q_errors)
        if q is not None:
            normalized.append(q)

    if errors:
        raise ValidationError(errors)

    return NormalizedQuiz(
        title=title,
        subject=subject,
        duration=duration,
        is_public=bool(payload.get("is_public", True)),
        questions=normalized,
    )
