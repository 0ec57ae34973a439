import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator

import pytest
import yaml
from fastapi.testclient import TestClient

from aulux.api.server import create_app
from aulux.core.app import AuluxApp
from aulux.core.db import dispose_db, init_db
from aulux.core.errors import UpstreamAPIError
from aulux.plugins.notifications.channels.base import DeliveryResult, NotificationChannel
from aulux.plugins.notifications.dispatcher import NotificationDispatcher
from aulux.plugins.notifications.service import record_attempt

CRON_SECRET = "cron-secret"


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class FakeChannel(NotificationChannel):
    """Records every send; addresses in fail_for are rejected."""

    def __init__(self, name: str, fail_for=()):
        self.name = name
        self.fail_for = set(fail_for)
        self.sent = []

    def send(self, address, notification_type, data):
        self.sent.append((address, notification_type, data))
        if address in self.fail_for:
            return DeliveryResult(success=False, error="rejected by provider", code=21211)
        return DeliveryResult(success=True, id=f"{self.name}-{len(self.sent)}")


class FakeClassroomClient:
    """In-memory Classroom with the ClassroomClient call signatures.

    failing holds keys like ("courses",), ("courseWork", course_id),
    ("students", course_id) or ("studentSubmissions", course_id, work_id).
    """

    def __init__(self, courses=None, course_work=None, students=None, submissions=None, failing=()):
        self.courses = courses or []
        self.course_work = course_work or {}
        self.students = students or {}
        self.submissions = submissions or {}
        self.failing = set(failing)
        self.calls = []

    def _check(self, *key):
        self.calls.append(key)
        if key in self.failing:
            raise UpstreamAPIError("Classroom", 403, {"error": {"message": "The caller does not have permission"}})

    def list_courses(self, page_size=None, page_token=None):
        self._check("courses")
        return {"courses": list(self.courses)}

    def list_course_work(self, course_id, page_size=None, page_token=None):
        self._check("courseWork", course_id)
        return {"courseWork": list(self.course_work.get(course_id, []))}

    def list_students(self, course_id, page_size=None, page_token=None):
        self._check("students", course_id)
        return {"students": list(self.students.get(course_id, []))}

    def list_submissions(self, course_id, course_work_id, user_id=None, page_size=None, page_token=None):
        self._check("studentSubmissions", course_id, course_work_id)
        self.calls.append(("userId", user_id))
        return {"studentSubmissions": list(self.submissions.get((course_id, course_work_id), []))}


class FakeCalendarClient:
    def __init__(self, items=None):
        self.items = items or []
        self.list_calls = []
        self.created = []

    def list_events(self, time_min, time_max, page_token=None):
        self.list_calls.append((time_min, time_max))
        return {"items": list(self.items)}

    def create_event(self, body):
        self.created.append(body)
        return {"id": "evt-1", **body}


class FakeTokenRefresher:
    def __init__(self):
        self.calls = []
        self.error = None

    def __call__(self, refresh_token):
        self.calls.append(refresh_token)
        if self.error is not None:
            raise self.error
        return "refreshed-token", utc_now_naive() + timedelta(hours=1)


def student(user_id: str, name: str, email: str) -> dict:
    return {"userId": user_id, "profile": {"name": {"fullName": name}, "emailAddress": email}}


def _write_config(tmp_path: Path) -> Path:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.dump({
        "api": {"host": "127.0.0.1", "port": 8765},
        "database": {"path": str(tmp_path / "aulux.db")},
        "logging": {"level": "DEBUG", "file": str(tmp_path / "logs" / "aulux.log")},
        "auth": {
            "client_id": "client-id",
            "client_secret": "client-secret",
            "redirect_uri": "http://testserver/api/auth/callback/google",
            "cookie_name": "aulux_session",
            "post_login_redirect": "/dashboard",
        },
        "attendance": {"backend": "sql"},
        "notifications": {
            "cron_secret": CRON_SECRET,
            "check_last": "1h",
            "phone_book": {"ana@example.com": "+5491100000001"},
        },
    }))
    return config_file


@pytest.fixture()
def token_refresher() -> FakeTokenRefresher:
    return FakeTokenRefresher()


@pytest.fixture()
def aulux_app(tmp_path, monkeypatch, token_refresher) -> Iterator[AuluxApp]:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("COORDINATOR_EMAILS", "coord@example.com")
    monkeypatch.setenv("PROFESSOR_EMAILS", "prof@example.com")
    monkeypatch.setenv("STUDENT_EMAILS", "ana@example.com,luis@example.com")

    app = AuluxApp(
        config_path=str(_write_config(tmp_path)),
        watch_config=False,
        db_url=f"sqlite:///{tmp_path / 'test.db'}",
        token_refresher=token_refresher,
    )
    app.email_channel = FakeChannel("email")
    app.whatsapp_channel = FakeChannel("whatsapp")
    app.dispatcher = NotificationDispatcher(app.email_channel, app.whatsapp_channel, on_attempt=record_attempt)
    try:
        yield app
    finally:
        app.shutdown()
        root_logger = logging.getLogger()
        for handler in AuluxApp._log_handlers:
            root_logger.removeHandler(handler)
            handler.close()
        AuluxApp._log_handlers = []


@pytest.fixture()
def client(aulux_app) -> TestClient:
    return TestClient(create_app(aulux_app))


@pytest.fixture()
def sign_in(aulux_app, client):
    """Open a session for email and attach its cookie to the test client."""

    def _sign_in(email: str, name: str = "Test User"):
        current = aulux_app.sessions.create(
            email,
            name,
            "access-token",
            "refresh-token",
            utc_now_naive() + timedelta(hours=1),
        )
        client.cookies.set(aulux_app.sessions.cookie_name, current.id)
        return current

    return _sign_in


@pytest.fixture()
def database(tmp_path) -> Iterator[None]:
    """Bare database for tests that do not need the whole app."""
    dispose_db()
    init_db(db_url=f"sqlite:///{tmp_path / 'bare.db'}")
    try:
        yield
    finally:
        dispose_db()
