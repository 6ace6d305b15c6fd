"""Shared fixtures: in-memory SQLite database and a recording mail transport."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("EMAIL_TRANSPORT", "console")
os.environ.setdefault("API_KEY", "test-key")
os.environ.setdefault("PORTAL_BASE_URL", "https://portal.test")

from datetime import datetime, timezone  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402

from payplan.common.db import Base, SessionLocal, engine  # noqa: E402
from payplan.services.notification import models as notification_models  # noqa: E402,F401
from payplan.services.notification.transport import SendResult  # noqa: E402
from payplan.services.planner import models as planner_models  # noqa: E402,F401
from payplan.services.portal import models as portal_models  # noqa: E402,F401

OPERATOR_HEADERS = {"x-api-key": "test-key", "x-owner-id": "owner-1"}


class RecordingTransport:
    """Collects outgoing mail; raises `error` instead when one is set."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[dict] = []
        self.error = error

    def send(self, to, subject, html, text=None):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return SendResult(message_id=f"test-{uuid4()}")


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test."""

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def session_factory():
    return SessionLocal


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def now():
    return datetime(2026, 4, 1, 15, 0, tzinfo=timezone.utc)


def client_document(email="ada@example.com", federal=None, states=None):
    """Intake document in the wizard's camelCase shape."""

    return {
        "addresseeName": "Ada Lovelace",
        "primaryEmail": email,
        "entityType": "individual",
        "federalPayments": federal if federal is not None else [
            {"type": "Estimated", "quarter": "Q1", "dueDate": "2026-04-15", "amount": "$5,000.00", "taxPeriod": "2026"},
            {"type": "Estimated", "quarter": "Q2", "dueDate": "2026-06-15", "amount": "5000", "taxPeriod": "2026"},
        ],
        "statePayments": states if states is not None else [
            {
                "stateName": "California",
                "payments": [
                    {"type": "Estimated", "quarter": "Q1", "dueDate": "04/15/2026", "amount": "1,200", "taxPeriod": "2026"},
                ],
            }
        ],
    }


@pytest.fixture
def make_document():
    return client_document
