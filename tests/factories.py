AUTHOR = "author-1"
STUDENT = "student-1"


def capital_quiz_payload(**overrides) -> dict:
    """One 1-mark MCQ (answer index 2) and one 2-mark fill-in (answer "Paris")."""
    payload = {
        "title": "Capitals",
        "subject": "Geography",
        "duration": 10,
        "questions": [
            {"type": "MCQ", "text": "Pick C", "options": ["A", "B", "C", "D"], "correct_answer": 2, "marks": 1},
            {"type": "Fill", "text": "Capital of France?", "correct_answer": "Paris", "marks": 2},
        ],
    }
    payload.update(overrides)
    return payload


def correct_answers(quiz) -> list[dict]:
    mcq, fill = quiz.questions
    return [
        {"question_id": mcq.id, "selected_answer": 2},
        {"question_id": fill.id, "selected_answer": " paris "},
    ]
