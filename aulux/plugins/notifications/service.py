"""
Service layer: append delivery attempts to the notification log and read it back.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import select

from aulux.core.db import session_scope
from aulux.plugins.notifications.models import NotificationLog


def record_attempt(notification_type: str, attempt: Dict[str, Any]) -> None:
    """Persist one attempt as produced by NotificationDispatcher."""
    code = attempt.get("code")
    with session_scope() as session:
        session.add(
            NotificationLog(
                created_at=datetime.now(timezone.utc).replace(tzinfo=None),
                notification_type=notification_type,
                channel=attempt.get("type") or "",
                recipient=attempt.get("recipient") or "",
                success=bool(attempt.get("success")),
                provider_id=attempt.get("id"),
                error=attempt.get("error"),
                code=str(code) if code is not None else None,
            )
        )


def recent_attempts(limit: int = 100) -> List[NotificationLog]:
    """Most recent attempts first."""
    with session_scope() as session:
        stmt = (
            select(NotificationLog)
            .order_by(NotificationLog.created_at.desc(), NotificationLog.id.desc())
            .limit(limit)
        )
        return list(session.execute(stmt).scalars().all())
