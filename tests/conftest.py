import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PROMETHEUS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "testing"
os.environ.pop("GROQ_API_KEY", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sqlpractice.core.auth import create_token
from sqlpractice.core.database import get_db
from sqlpractice.main import app
from sqlpractice.models.orm import Base
from sqlpractice.services.llm import FeedbackError, get_feedback_client


class FakeFeedbackClient:
    """Returns queued replies and remembers every prompt it was sent."""

    def __init__(self):
        self.replies = []
        self.prompts = []
        self.error = None

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise FeedbackError(self.error)
        return self.replies.pop(0) if self.replies else "**CORRECT**"


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool, future=True)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def evaluator():
    return FakeFeedbackClient()


@pytest.fixture
def client(session_factory, evaluator):
    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_feedback_client] = lambda: evaluator
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_header():
    def make(user_id="user_123", name=None):
        return {"Authorization": f"Bearer {create_token(user_id, name)}"}
    return make
