from datetime import datetime, timedelta

from quiz_service import analytics, crud
from quiz_service.analytics import NO_ATTEMPTS_MESSAGE
from quiz_service.attempts import Identity, submit_attempt

from .factories import STUDENT, correct_answers

T0 = datetime(2026, 1, 1, 12, 0, 0)


def attempt_at(db, quiz, responses, minutes: int, identity):
    attempt = submit_attempt(db, quiz.id, responses, 30, identity).attempt
    crud.update_attempt_fields(db, attempt.id, completed_at=T0 + timedelta(minutes=minutes))
    return attempt


def seed(db, make_quiz, student):
    """Geography: 100% and 33%; Math: 0%."""
    geo = make_quiz()
    math = make_quiz(
        title="Sums",
        subject="Math",
        questions=[{"type": "MCQ", "text": "1+1", "options": ["1", "2", "3", "4"], "correct_answer": 1}],
    )
    full = attempt_at(db, geo, correct_answers(geo), 1, student)
    partial = attempt_at(db, geo, correct_answers(geo)[:1], 2, student)
    wrong = attempt_at(db, math, [{"question_id": math.questions[0].id, "selected_answer": 0}], 3, student)
    return geo, math, (full, partial, wrong)


def test_no_attempts_gives_explicit_empty_state(db):
    summary = analytics.aggregate(db, STUDENT)

    assert summary.total_attempts == 0
    assert summary.has_attempts is False
    assert summary.average_percentage == 0.0
    assert summary.subject_performance == {}
    assert summary.recent_activity == []
    assert summary.message == NO_ATTEMPTS_MESSAGE


def test_aggregate_groups_by_subject(db, make_quiz, student):
    seed(db, make_quiz, student)

    summary = analytics.aggregate(db, STUDENT)

    assert summary.total_attempts == 3
    assert summary.has_attempts is True
    assert summary.average_percentage == 44.33
    assert set(summary.subject_performance) == {"Geography", "Math"}
    assert summary.subject_performance["Geography"].attempts == 2
    assert summary.subject_performance["Geography"].average_percentage == 66.5
    assert summary.subject_performance["Math"].average_percentage == 0.0
    assert summary.message is None


def test_aggregate_ignores_stale_percentage_cache(db, make_quiz, student):
    _, _, (full, _, _) = seed(db, make_quiz, student)
    crud.update_attempt_fields(db, full.id, percentage=0)

    summary = analytics.aggregate(db, STUDENT)

    assert summary.subject_performance["Geography"].average_percentage == 66.5


def test_recent_activity_is_newest_first_and_capped(db, make_quiz, student):
    geo = make_quiz()
    for minute in range(7):
        attempt_at(db, geo, correct_answers(geo), minute, student)

    summary = analytics.aggregate(db, STUDENT)

    assert summary.total_attempts == 7
    assert len(summary.recent_activity) == 5
    times = [a.completed_at for a in summary.recent_activity]
    assert times == sorted(times, reverse=True)
    assert times[0] == T0 + timedelta(minutes=6)
    assert summary.recent_activity[0].title == "Capitals"
    assert summary.recent_activity[0].subject == "Geography"


def test_deleted_quiz_is_left_out_of_subject_grouping(db, make_quiz, student):
    _, math, _ = seed(db, make_quiz, student)
    crud.delete_quiz_row(db, crud.get_quiz(db, math.id))

    summary = analytics.aggregate(db, STUDENT)

    assert summary.total_attempts == 3
    assert set(summary.subject_performance) == {"Geography"}
    newest = summary.recent_activity[0]
    assert newest.subject is None
    assert newest.title == "Sums"


def test_other_users_attempts_are_not_counted(db, make_quiz, student):
    seed(db, make_quiz, student)
    assert analytics.aggregate(db, "someone-else").total_attempts == 0


def test_history_lists_attempts_with_quiz_digest(db, make_quiz, student):
    _, math, (full, _, wrong) = seed(db, make_quiz, student)
    crud.delete_quiz_row(db, crud.get_quiz(db, math.id))

    items = analytics.history(db, STUDENT)

    assert [i["id"] for i in items] == [wrong.id, wrong.id - 1, full.id]
    assert items[0]["quiz"] is None
    assert items[-1]["quiz"]["subject"] == "Geography"
    assert items[-1]["percentage"] == 100


def test_score_summary(db, make_quiz, student):
    seed(db, make_quiz, student)

    out = analytics.score_summary(db, STUDENT)

    # scores 3 + 1 + 0 against 3 + 3 + 1 possible marks
    assert out["total_attempts"] == 3
    assert out["total_score"] == 4.0
    assert out["total_possible_marks"] == 7.0
    assert out["average_score"] == 1.33
    assert out["average_percentage"] == 57.14


def test_score_summary_empty_state(db):
    out = analytics.score_summary(db, STUDENT)
    assert out["has_attempts"] is False
    assert out["average_percentage"] == 0.0
    assert out["message"] == NO_ATTEMPTS_MESSAGE


def test_system_stats(db, make_quiz, student):
    geo = make_quiz()
    submit_attempt(db, geo.id, correct_answers(geo), 0, student)
    submit_attempt(db, geo.id, [], 0, Identity())

    stats = analytics.system_stats(db)

    assert stats["counts"] == {"quizzes": 1, "attempts": 2, "users": 2}
    assert len(stats["recent_attempts"]) == 2
