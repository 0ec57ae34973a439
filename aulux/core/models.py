"""
Core DB models: server-side user sessions (OAuth tokens and derived role).
"""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import Column, String, DateTime, Text, delete, select

from aulux.core.db import Base, session_scope


def _utc_now() -> datetime:
    """UTC now as naive datetime for DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserSession(Base):
    """One signed-in browser session. The cookie only carries the id."""
    __tablename__ = "user_sessions"

    id = Column(String(128), primary_key=True)
    email = Column(String(320), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False)  # coordinador | profesor | alumno
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime(timezone=False), nullable=True)  # access token expiry, naive UTC
    created_at = Column(DateTime(timezone=False), default=_utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=False), default=_utc_now, onupdate=_utc_now, nullable=False)


def create_session_record(
    session_id: str,
    email: str,
    name: Optional[str],
    role: str,
    access_token: Optional[str],
    refresh_token: Optional[str],
    expires_at: Optional[datetime],
) -> UserSession:
    now = _utc_now()
    row = UserSession(
        id=session_id,
        email=email,
        name=name,
        role=role,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=expires_at,
        created_at=now,
        updated_at=now,
    )
    with session_scope() as session:
        session.add(row)
    return row


def get_session_record(session_id: str) -> Optional[UserSession]:
    with session_scope() as session:
        return session.get(UserSession, session_id)


def get_latest_session_for_email(email: str) -> Optional[UserSession]:
    """Most recently updated session for this email that still holds a refresh token (used by cron)."""
    with session_scope() as session:
        return (
            session.execute(
                select(UserSession)
                .where(
                    UserSession.email == email.strip().lower(),
                    UserSession.refresh_token.is_not(None),
                )
                .order_by(UserSession.updated_at.desc())
                .limit(1)
            )
            .scalars().first()
        )


def update_session_record(session_id: str, **fields: Any) -> Optional[UserSession]:
    """Update token/role columns of a session. Unknown ids return None."""
    with session_scope() as session:
        row = session.get(UserSession, session_id)
        if row is None:
            return None
        for key, value in fields.items():
            setattr(row, key, value)
        row.updated_at = _utc_now()
        return row


def delete_session_record(session_id: str) -> bool:
    with session_scope() as session:
        result = session.execute(delete(UserSession).where(UserSession.id == session_id))
        return result.rowcount > 0
