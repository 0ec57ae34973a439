"""
WhatsApp channel over Twilio's messaging API.
"""
import logging
from typing import Any, Dict, Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient

from aulux.plugins.notifications.templates import whatsapp_text

from .base import DeliveryResult, NotificationChannel

DEFAULT_FROM = "whatsapp:+14155238886"  # Twilio sandbox number


def whatsapp_address(phone: str) -> str:
    phone = phone.strip()
    return phone if phone.startswith("whatsapp:") else f"whatsapp:{phone}"


class TwilioWhatsAppChannel(NotificationChannel):
    name = "whatsapp"

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str] = None,
        client: Optional[TwilioClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = whatsapp_address(from_number) if from_number else DEFAULT_FROM
        self._client = client
        self.logger = logger or logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, whatsapp_config: Dict[str, Any]) -> "TwilioWhatsAppChannel":
        return cls(
            whatsapp_config.get("account_sid"),
            whatsapp_config.get("auth_token"),
            whatsapp_config.get("from"),
        )

    def _get_client(self) -> Optional[TwilioClient]:
        if self._client is None and self.account_sid and self.auth_token:
            self._client = TwilioClient(self.account_sid, self.auth_token)
        return self._client

    def send(self, address: str, notification_type: str, data: Dict[str, Any]) -> DeliveryResult:
        to = whatsapp_address(address)
        client = self._get_client()
        if client is None:
            self.logger.warning(f"WhatsApp to {to} not sent: Twilio credentials not configured")
            return DeliveryResult(success=False, error="Twilio credentials not configured")
        try:
            message = client.messages.create(
                from_=self.from_number,
                to=to,
                body=whatsapp_text(notification_type, data),
            )
        except TwilioRestException as e:
            self.logger.error(f"Twilio rejected WhatsApp to {to}: {e.status} code={e.code} {e.msg}")
            return DeliveryResult(success=False, error=e.msg, code=e.code)
        except Exception as e:
            self.logger.error(f"Error sending WhatsApp to {to}: {e}")
            return DeliveryResult(success=False, error=str(e))

        self.logger.info(f"WhatsApp {notification_type} sent to {to} (sid={message.sid}, status={message.status})")
        return DeliveryResult(success=True, id=message.sid)
