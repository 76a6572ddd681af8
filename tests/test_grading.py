import pytest

from quiz_service.errors import NotFoundError
from quiz_service.grading import derive_percentage, grade
from quiz_service.questions import (
    FillBlankQuestion,
    MultipleChoiceQuestion,
    QuizSnapshot,
    UnsupportedQuestion,
)

MCQ = MultipleChoiceQuestion(id=1, text="Pick C", options=("A", "B", "C", "D"), correct_answer=2, marks=1)
FILL = FillBlankQuestion(id=2, text="Capital of France?", correct_answer="Paris", marks=2)
QUIZ = QuizSnapshot(id=10, title="Capitals", subject="Geography", questions=(MCQ, FILL))


def test_all_correct_scores_full_marks():
    result = grade(QUIZ, [
        {"question_id": 1, "selected_answer": 2},
        {"question_id": 2, "selected_answer": " paris "},
    ])

    assert result.score == 3
    assert result.total_marks == 3
    assert result.total_questions == 2
    assert result.percentage == 100
    assert [r.is_correct for r in result.responses] == [True, True]


def test_partial_submission_counts_all_questions_in_totals():
    result = grade(QUIZ, [{"question_id": 1, "selected_answer": 0}])

    assert result.score == 0
    assert result.total_marks == 3
    assert result.total_questions == 2
    assert result.percentage == 0
    assert len(result.responses) == 1
    assert result.responses[0].is_correct is False


@pytest.mark.parametrize("answer", [2, "2", " 2 ", 2.0])
def test_multiple_choice_compares_integer_value(answer):
    result = grade(QUIZ, [{"question_id": 1, "selected_answer": answer}])
    assert result.responses[0].is_correct is True
    assert result.score == 1


@pytest.mark.parametrize("answer", [None, "", "two", True, 2.5, [2], 3])
def test_multiple_choice_bad_or_wrong_answers_are_incorrect(answer):
    result = grade(QUIZ, [{"question_id": 1, "selected_answer": answer}])
    assert result.responses[0].is_correct is False
    assert result.score == 0


@pytest.mark.parametrize("answer", ["Paris", "paris", "  PARIS ", "\tParis\n"])
def test_fill_blank_ignores_case_and_surrounding_whitespace(answer):
    result = grade(QUIZ, [{"question_id": 2, "selected_answer": answer}])
    assert result.responses[0].is_correct is True
    assert result.score == 2


@pytest.mark.parametrize("answer", [None, "", "Lyon", "Pa ris"])
def test_fill_blank_missing_or_wrong_is_incorrect(answer):
    result = grade(QUIZ, [{"question_id": 2, "selected_answer": answer}])
    assert result.responses[0].is_correct is False


def test_unknown_question_ids_are_dropped():
    base = grade(QUIZ, [{"question_id": 1, "selected_answer": 2}])
    noisy = grade(QUIZ, [
        {"question_id": 1, "selected_answer": 2},
        {"question_id": 999, "selected_answer": 2},
        {"question_id": "nope", "selected_answer": "Paris"},
    ])

    assert noisy.score == base.score
    assert [r.question_id for r in noisy.responses] == [1]


def test_question_id_may_be_sent_as_string():
    result = grade(QUIZ, [{"question_id": "2", "selected_answer": "Paris"}])
    assert result.responses[0].question_id == 2
    assert result.score == 2


def test_unsupported_question_type_grades_incorrect_without_failing():
    odd = UnsupportedQuestion(id=3, text="Essay", raw_type="Essay", correct_answer="anything", marks=4)
    quiz = QuizSnapshot(id=11, title="Mixed", subject="Misc", questions=(MCQ, odd))

    result = grade(quiz, [
        {"question_id": 1, "selected_answer": 2},
        {"question_id": 3, "selected_answer": "anything"},
    ])

    assert result.score == 1
    assert result.total_marks == 5
    assert result.responses[1].is_correct is False
    assert result.responses[1].question_type == "Essay"


def test_response_carries_type_and_correct_answer_snapshot():
    result = grade(QUIZ, [{"question_id": 2, "selected_answer": "x"}])
    r = result.responses[0]
    assert r.question_type == "Fill"
    assert r.correct_answer == "Paris"
    assert r.selected_answer == "x"


def test_zero_total_marks_yields_zero_percentage():
    empty = QuizSnapshot(id=12, title="Empty", subject="None")
    result = grade(empty, [{"question_id": 1, "selected_answer": 2}])

    assert result.total_marks == 0
    assert result.percentage == 0
    assert result.responses == []


def test_missing_quiz_is_not_found():
    with pytest.raises(NotFoundError):
        grade(None, [])


def test_grading_is_deterministic():
    responses = [{"question_id": 1, "selected_answer": "2"}, {"question_id": 2, "selected_answer": "lyon"}]
    assert grade(QUIZ, responses) == grade(QUIZ, responses)


@pytest.mark.parametrize("score,total,expected", [
    (0, 0, 0),
    (5, 0, 0),
    (1, 3, 33),
    (2, 3, 67),
    (1, 8, 13),
    (3, 8, 38),
    (3, 3, 100),
    (float("inf"), 1, 0),
])
def test_derive_percentage(score, total, expected):
    assert derive_percentage(score, total) == expected
