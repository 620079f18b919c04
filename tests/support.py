"""Shared fixtures for the unittest suites: throwaway databases, users, mailers and clocks."""

import unittest
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.core.exceptions import MailDeliveryError
from app.models import Base, User
from app.services.auth_workflows import AuthService, build_auth_service
from app.services.credential_store import CredentialStore
from app.services.roles import RoleResolver

PASSWORD = "secret123"


def make_session_factory() -> sessionmaker:
    """Fresh in-memory SQLite database with all tables and the default roles."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    with factory() as session:
        RoleResolver(session).seed_defaults()
    return factory


def make_session() -> Session:
    return make_session_factory()()


def make_user(
    session: Session,
    email: str = "jane@example.com",
    password: str = PASSWORD,
    name: str = "Jane Doe",
    roles: Iterable[str] = ("User",),
    verified: bool = True,
) -> User:
    store = CredentialStore(session)
    with store.transaction():
        user = store.create(name, email, password)
        store.sync_roles(user, RoleResolver(session).ids_for_names(roles))
        if verified:
            store.mark_email_verified(user)
    return user


class RecordingMailer:
    """Mailer that keeps every message in memory; set fail=True to simulate a transport error."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict[str, Any]] = []

    async def send(self, to_email: str, subject: str, template: str, context: dict[str, Any]) -> None:
        if self.fail:
            raise MailDeliveryError("SMTP unavailable")
        self.sent.append(
            {"to": to_email, "subject": subject, "template": template, "context": context}
        )

    def sent_to(self, email: str, template: str | None = None) -> list[dict[str, Any]]:
        return [
            m for m in self.sent
            if m["to"] == email and (template is None or m["template"] == template)
        ]


class FixedClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_service(session: Session, mailer: RecordingMailer | None = None) -> AuthService:
    return build_auth_service(session, mailer or RecordingMailer(), get_settings())


class ApiTestCase(unittest.TestCase):
    """TestClient against the real app with get_db and get_mailer pointed at test doubles."""

    def setUp(self) -> None:
        from app.api.v1.auth import get_mailer
        from app.core.database import get_db
        from app.main import app

        self.app = app
        self.session_factory = make_session_factory()
        self.mailer = RecordingMailer()

        def override_get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_mailer] = lambda: self.mailer
        self.client = TestClient(app)
        self.prefix = get_settings().API_V1_PREFIX

    def tearDown(self) -> None:
        self.app.dependency_overrides.clear()

    def url(self, path: str) -> str:
        return f"{self.prefix}{path}"

    def create_user(self, **kwargs: Any) -> int:
        with self.session_factory() as session:
            return make_user(session, **kwargs).id

    def fetch_user(self, email: str) -> User | None:
        with self.session_factory() as session:
            user = CredentialStore(session).find_by_email(email)
            if user is not None:
                session.expunge(user)
            return user

    def login(self, email: str, password: str = PASSWORD) -> str:
        response = self.client.post(self.url("/auth/login"), json={"email": email, "password": password})
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["data"]["access_token"]

    @staticmethod
    def bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}
