import pytest
from fastapi.testclient import TestClient

from shared.database import init_db, make_session_factory
from quiz_service import crud, models  # noqa: F401
from quiz_service.attempts import Identity
from quiz_service.main import create_app
from quiz_service.questions import validate_quiz

from .factories import AUTHOR, STUDENT, capital_quiz_payload


@pytest.fixture
def session_factory():
    engine, SessionLocal = make_session_factory("sqlite://")
    init_db(engine)
    yield SessionLocal
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_quiz(db):
    def _make(owner: str = AUTHOR, **overrides):
        return crud.create_quiz(db, owner, validate_quiz(capital_quiz_payload(**overrides)))
    return _make


@pytest.fixture
def student() -> Identity:
    return Identity(user_id=STUDENT, email="student@example.com")


@pytest.fixture
def client():
    with TestClient(create_app("sqlite://")) as c:
        yield c
