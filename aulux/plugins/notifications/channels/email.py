"""
Email channel over Resend.
"""
import logging
from typing import Any, Dict, Optional

import resend

from aulux.plugins.notifications.templates import email_html, email_subject

from .base import DeliveryResult, NotificationChannel

DEFAULT_FROM = "noreply@resend.dev"


class ResendEmailChannel(NotificationChannel):
    name = "email"

    def __init__(self, api_key: Optional[str], from_email: Optional[str] = None, logger: Optional[logging.Logger] = None):
        self.api_key = api_key
        self.from_email = from_email or DEFAULT_FROM
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, email_config: Dict[str, Any]) -> "ResendEmailChannel":
        return cls(email_config.get("api_key"), email_config.get("from"))

    def send(self, address: str, notification_type: str, data: Dict[str, Any]) -> DeliveryResult:
        if not self.api_key:
            self.logger.warning(f"Email to {address} not sent: Resend API key not configured")
            return DeliveryResult(success=False, error="Resend API key not configured")

        resend.api_key = self.api_key
        params = {
            "from": self.from_email,
            "to": [address],
            "subject": email_subject(notification_type, data),
            "html": email_html(notification_type, data),
        }
        try:
            response = resend.Emails.send(params)
        except Exception as e:
            self.logger.error(f"Error sending email to {address}: {e}")
            return DeliveryResult(success=False, error=str(e), code=getattr(e, "code", None))

        message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
        self.logger.info(f"Email {notification_type} sent to {address} (id={message_id})")
        return DeliveryResult(success=True, id=message_id)
