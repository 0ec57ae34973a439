"""
SQLAlchemy model for notification delivery attempts (history).
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from aulux.core.db import Base


class NotificationLog(Base):
    """One delivery attempt: one channel, one recipient."""
    __tablename__ = "notification_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=False), nullable=False, index=True)
    notification_type = Column(String(64), nullable=False)
    channel = Column(String(32), nullable=False)  # email | whatsapp
    recipient = Column(String(255), nullable=False)
    success = Column(Boolean, default=False)
    provider_id = Column(String(255), nullable=True)
    error = Column(Text, nullable=True)
    code = Column(String(64), nullable=True)
