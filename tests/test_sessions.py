from datetime import timedelta

from google.auth.exceptions import RefreshError

from aulux.core.models import update_session_record
from aulux.core.roles import Role

from conftest import utc_now_naive


def _expired():
    return utc_now_naive() - timedelta(minutes=5)


def _valid():
    return utc_now_naive() + timedelta(hours=1)


def test_create_resolves_role_and_normalizes_email(aulux_app):
    current = aulux_app.sessions.create("Prof@Example.com", "Profe", "tok", "ref", _valid())

    assert current.email == "prof@example.com"
    assert current.role == Role.PROFESSOR
    assert aulux_app.sessions.load(current.id).role == Role.PROFESSOR


def test_unlisted_email_signs_in_as_student(aulux_app):
    current = aulux_app.sessions.create("someone@example.com", None, "tok", "ref", _valid())
    assert current.role == Role.STUDENT


def test_load_unknown_session_returns_none(aulux_app):
    assert aulux_app.sessions.load("does-not-exist") is None


def test_expired_token_is_refreshed_and_role_recomputed(aulux_app, token_refresher, monkeypatch):
    current = aulux_app.sessions.create("ana@example.com", "Ana", "old-token", "ref-1", _expired())
    assert current.role == Role.STUDENT

    monkeypatch.setenv("COORDINATOR_EMAILS", "coord@example.com,ana@example.com")
    loaded = aulux_app.sessions.load(current.id)

    assert token_refresher.calls == ["ref-1"]
    assert loaded.access_token == "refreshed-token"
    assert loaded.role == Role.COORDINATOR
    # persisted: the next load needs no refresh
    assert aulux_app.sessions.load(current.id).access_token == "refreshed-token"
    assert token_refresher.calls == ["ref-1"]


def test_rejected_refresh_ends_the_session(aulux_app, token_refresher):
    current = aulux_app.sessions.create("ana@example.com", "Ana", "old-token", "ref-1", _expired())
    token_refresher.error = RefreshError("invalid_grant")

    assert aulux_app.sessions.load(current.id) is None

    token_refresher.error = None
    assert aulux_app.sessions.load(current.id) is None


def test_expired_token_without_refresh_token_is_unusable(aulux_app, token_refresher):
    current = aulux_app.sessions.create("ana@example.com", "Ana", "old-token", None, _expired())

    assert aulux_app.sessions.load(current.id) is None
    assert token_refresher.calls == []


def test_session_older_than_max_age_is_dropped(aulux_app):
    current = aulux_app.sessions.create("ana@example.com", "Ana", "tok", "ref", _valid())
    too_old = utc_now_naive() - timedelta(seconds=aulux_app.sessions.max_age + 60)
    update_session_record(current.id, created_at=too_old)

    assert aulux_app.sessions.load(current.id) is None


def test_for_email_returns_stored_credentials(aulux_app):
    assert aulux_app.sessions.for_email("prof@example.com") is None

    aulux_app.sessions.create("prof@example.com", "Profe", "tok-1", None, _valid())
    assert aulux_app.sessions.for_email("prof@example.com") is None

    stored = aulux_app.sessions.create("prof@example.com", "Profe", "tok-2", "ref-2", _valid())
    found = aulux_app.sessions.for_email("PROF@example.com")
    assert found.id == stored.id
    assert found.access_token == "tok-2"


def test_destroy_removes_the_session(aulux_app):
    current = aulux_app.sessions.create("ana@example.com", "Ana", "tok", "ref", _valid())

    assert aulux_app.sessions.destroy(current.id) is True
    assert aulux_app.sessions.load(current.id) is None
    assert aulux_app.sessions.destroy(current.id) is False


def test_credentials_carry_tokens_and_client(aulux_app):
    current = aulux_app.sessions.create("ana@example.com", "Ana", "tok", "ref", _valid())
    creds = aulux_app.sessions.credentials(current)

    assert creds.token == "tok"
    assert creds.refresh_token == "ref"
    assert creds.client_id == "client-id"
