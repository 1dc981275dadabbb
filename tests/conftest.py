"""
Pytest configuration file
Sets up the test environment and shared fixtures
"""

import os
from datetime import datetime, timedelta, timezone

# Configuration is read at import time, so this must come before app imports
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-pytest-only-do-not-use-in-production")
os.environ.setdefault("AWS_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.pop("WEBSITE_URL", None)

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from auth import create_access_token
from database import get_session
from main import app
from services.email_service import get_email_service
from services.otp_service import InMemoryOTPLedger, get_otp_ledger
from services.user_service import create_user, hash_password


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeMailer:
    """Records outgoing mail instead of calling SES."""

    def __init__(self):
        self.verification_emails = []
        self.todo_lists = []
        self.fail = False
        # Raised instead of an SES error when set
        self.error = None

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error
        if self.fail:
            raise ClientError(
                {"Error": {"Code": "MessageRejected", "Message": "Email address is not verified."}},
                "SendEmail",
            )

    def send_verification_email(self, email, otp, purpose):
        self._maybe_fail()
        self.verification_emails.append((email, otp, purpose))
        return {"MessageId": "test-message-id"}

    def send_todo_list(self, email, username, todos):
        self._maybe_fail()
        self.todo_lists.append((email, username, [todo.title for todo in todos]))
        return {"MessageId": "test-message-id"}

    def last_otp(self, email):
        for recipient, otp, _ in reversed(self.verification_emails):
            if recipient == email:
                return otp
        return None


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(clock):
    return InMemoryOTPLedger(clock=clock)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(engine, ledger, mailer):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_otp_ledger] = lambda: ledger
    app.dependency_overrides[get_email_service] = lambda: mailer

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def lenient_client(client):
    """Same overrides as ``client`` but returns 500 responses instead of raising."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def make_user(session):
    def _make_user(username="alice", email="alice@example.com", password="secret123"):
        return create_user(session, username, email, hash_password(password))

    return _make_user


@pytest.fixture
def auth_header():
    def _auth_header(user):
        token = create_access_token(user.id, user.username, user.email)
        return {"Authorization": f"Bearer {token}"}

    return _auth_header
