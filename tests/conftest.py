"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests, and a
scripted narrator so no request ever leaves the process.
"""
import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_daybook.db")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from daybook.db.base import Base, get_db
from daybook.main import app
from daybook.services.narrator import NarrationRequest, NarrationResult, build_prompt, get_narrator
from daybook.services.reflection_engine import ReflectionEngine

SQLITE_URL = "sqlite:///./test_daybook.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeNarrator:
    """
    Returns canned narratives and records every request.

    Queue exceptions in `errors` to make the next calls fail instead.
    """

    def __init__(self):
        self.calls: list[NarrationRequest] = []
        self.errors: list[Exception] = []

    def generate(self, request: NarrationRequest) -> NarrationResult:
        self.calls.append(request)
        if self.errors:
            raise self.errors.pop(0)
        narrative = f"A {request.period_scale} reflection ({len(self.calls)}) on: {request.text}"
        return NarrationResult(
            narrative=narrative,
            word_count=len(narrative.split()),
            prompt_used=build_prompt(request),
            model="fake/narrator",
        )

    def check_connection(self) -> bool:
        return True


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def user_id() -> str:
    """Fresh owner per test; tests share one database file."""
    return f"user-{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def narrator():
    return FakeNarrator()


@pytest.fixture()
def reflection_engine(db, narrator):
    return ReflectionEngine(db=db, narrator=narrator)


@pytest.fixture()
def client(narrator):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_narrator] = lambda: narrator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def add_memory(db, user_id):
    """Write a memory for any day by passing that day as `today`."""
    from daybook.services import memory as memory_service

    def _add(day, text="Walked by the river after work.", owner=None, mood=None):
        return memory_service.upsert_memory(
            db, owner or user_id, day, text, mood=mood, today=day
        )

    return _add
