from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from typing import List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from partnerhub.api import deps
from partnerhub.config import settings
from partnerhub.db.models import Base
from partnerhub.db.session import get_db
from partnerhub.main import app
from partnerhub.services.email import EmailPayload, EmailService
from partnerhub.services.reminders import ReportReminderService
from partnerhub.services.schedules import ScheduleService
from partnerhub.services.tokens import ReportTokenService


ADMIN_KEY = "test-admin-key"
FRONTEND_URL = "http://frontend.test"


class DummyEmailService(EmailService):
    """Renders the real templates and records what would have been sent."""

    def __init__(self) -> None:
        super().__init__()
        self.sent: List[Tuple[List[str], EmailPayload]] = []

    def send(self, recipients, payload):
        self.sent.append((list(recipients), payload))

    def subjects(self) -> List[str]:
        return [payload.subject for _, payload in self.sent]


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def email():
    return DummyEmailService()


@pytest.fixture
def token_service():
    return ReportTokenService(FRONTEND_URL)


@pytest.fixture
def reminder_service(session_factory, email, token_service):
    return ReportReminderService(
        session_factory,
        email,
        token_service,
        tz="UTC",
        escalation_email="escalation@example.com",
    )


@pytest.fixture
def client(monkeypatch, session_factory, reminder_service, token_service):
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_token_service] = lambda: token_service
    app.dependency_overrides[deps.get_reminder_service] = lambda: reminder_service
    app.dependency_overrides[deps.get_schedule_service] = lambda: ScheduleService(reminder_service)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}
