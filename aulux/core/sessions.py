"""
Server-side sessions: create at sign-in, refresh the Google access token when it
expires (recomputing the role), destroy at sign-out or after session_max_age.
"""
import logging
import secrets
from collections import namedtuple
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from fastapi import HTTPException, Request
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials

from aulux.core.models import (
    UserSession,
    create_session_record,
    delete_session_record,
    get_latest_session_for_email,
    get_session_record,
    update_session_record,
)
from aulux.core.roles import RoleProvider

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"

CurrentSession = namedtuple(
    "CurrentSession",
    [
        "id",
        "email",
        "name",
        "role",
        "access_token",
        "refresh_token",
        "expires_at",  # naive UTC or None
    ],
    defaults=(None,) * 7,
)

# refresh_token -> (access_token, expiry naive UTC)
TokenRefresher = Callable[[str], Tuple[str, Optional[datetime]]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _from_row(row: UserSession) -> CurrentSession:
    return CurrentSession(
        id=row.id,
        email=row.email,
        name=row.name,
        role=row.role,
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        expires_at=row.expires_at,
    )


class GoogleTokenRefresher:
    """Exchange a refresh token for a fresh access token."""

    def __init__(self, client_id: str, client_secret: str, token_uri: str = TOKEN_URI):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_uri = token_uri

    def __call__(self, refresh_token: str) -> Tuple[str, Optional[datetime]]:
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=self.token_uri,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        creds.refresh(GoogleRequest())
        return creds.token, creds.expiry


class SessionManager:
    """Owns the session table and the refresh policy."""

    def __init__(
        self,
        role_provider: RoleProvider,
        auth_config: Dict[str, Any],
        token_refresher: Optional[TokenRefresher] = None,
    ):
        self.role_provider = role_provider
        self.auth_config = auth_config
        self.cookie_name = auth_config.get("cookie_name") or "aulux_session"
        self.max_age = int(auth_config.get("session_max_age") or 30 * 24 * 3600)
        self.token_refresher = token_refresher or GoogleTokenRefresher(
            auth_config.get("client_id") or "",
            auth_config.get("client_secret") or "",
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    def create(
        self,
        email: str,
        name: Optional[str],
        access_token: Optional[str],
        refresh_token: Optional[str],
        expires_at: Optional[datetime],
    ) -> CurrentSession:
        email = email.strip().lower()
        role = self.role_provider.resolve(email)
        session_id = secrets.token_urlsafe(32)
        row = create_session_record(session_id, email, name, role, access_token, refresh_token, expires_at)
        self.logger.info(f"Session created for {email} with role {role}")
        return _from_row(row)

    def load(self, session_id: str) -> Optional[CurrentSession]:
        """Return the live session, refreshing its token if needed. None when unknown or expired."""
        row = get_session_record(session_id)
        if row is None:
            return None
        if row.created_at and row.created_at + timedelta(seconds=self.max_age) < _utc_now():
            self.logger.info(f"Session for {row.email} exceeded max age")
            delete_session_record(session_id)
            return None
        current = _from_row(row)
        if self._token_expired(current):
            return self.refresh(current)
        return current

    def for_email(self, email: str) -> Optional[CurrentSession]:
        """Stored credentials of a user, refreshed if needed (cron path; no browser involved)."""
        row = get_latest_session_for_email(email)
        if row is None:
            return None
        current = _from_row(row)
        if self._token_expired(current):
            return self.refresh(current)
        return current

    def refresh(self, current: CurrentSession) -> Optional[CurrentSession]:
        """Refresh the access token and recompute the role. None when Google refuses."""
        if not current.refresh_token:
            self.logger.info(f"Access token expired for {current.email} and no refresh token stored")
            return None
        try:
            access_token, expires_at = self.token_refresher(current.refresh_token)
        except RefreshError as e:
            self.logger.warning(f"Token refresh rejected for {current.email}: {e}")
            delete_session_record(current.id)
            return None
        role = self.role_provider.resolve(current.email)
        if role != current.role:
            self.logger.info(f"Role for {current.email} changed: {current.role} -> {role}")
        update_session_record(current.id, access_token=access_token, expires_at=expires_at, role=role)
        return current._replace(access_token=access_token, expires_at=expires_at, role=role)

    def destroy(self, session_id: str) -> bool:
        return delete_session_record(session_id)

    def credentials(self, current: CurrentSession) -> Credentials:
        """google-auth credentials for API clients built on behalf of this session."""
        return Credentials(
            token=current.access_token,
            refresh_token=current.refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.auth_config.get("client_id") or None,
            client_secret=self.auth_config.get("client_secret") or None,
        )

    @staticmethod
    def _token_expired(current: CurrentSession) -> bool:
        if not current.access_token:
            return True
        if current.expires_at is None:
            return False
        # Refresh a minute early so in-flight calls don't race the expiry
        return current.expires_at <= _utc_now() + timedelta(seconds=60)


def session_dependency(sessions: SessionManager) -> Callable[[Request], CurrentSession]:
    """FastAPI dependency: the caller's session, or 401."""

    def require_session(request: Request) -> CurrentSession:
        session_id = request.cookies.get(sessions.cookie_name)
        if not session_id:
            raise HTTPException(status_code=401, detail="Unauthorized")
        current = sessions.load(session_id)
        if current is None:
            raise HTTPException(status_code=401, detail="Unauthorized")
        return current

    return require_session


def role_dependency(sessions: SessionManager, *roles: str) -> Callable[[Request], CurrentSession]:
    """FastAPI dependency: the caller's session if its role is one of roles, else 403."""
    require_session = session_dependency(sessions)

    def require_role(request: Request) -> CurrentSession:
        current = require_session(request)
        if current.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return current

    return require_role
