"""
Notification fan-out: for each recipient, one email attempt and, when a phone
is known, one WhatsApp attempt. Sequential, best effort, no retries. A failed
attempt is recorded and the loop moves on.
"""
import logging
from collections import namedtuple
from typing import Any, Callable, Dict, Iterable, List, Optional

from aulux.core.errors import InvalidRequestError

from .channels.base import DeliveryResult, NotificationChannel
from .templates import NOTIFICATION_TYPES

Recipient = namedtuple(
    "Recipient",
    [
        "email",
        "phone",  # E.164, optional
        "name",
        "role",   # student | teacher | coordinator
    ],
    defaults=(None, None, None, "student"),
)

# (notification_type, attempt) -> None
AttemptListener = Callable[[str, Dict[str, Any]], None]


def _attempt(channel: str, recipient: str, result: DeliveryResult) -> Dict[str, Any]:
    record: Dict[str, Any] = {"type": channel, "recipient": recipient, "success": bool(result.success)}
    if result.id:
        record["id"] = result.id
    if result.error:
        record["error"] = result.error
    if result.code is not None:
        record["code"] = result.code
    return record


class NotificationDispatcher:
    def __init__(
        self,
        email_channel: NotificationChannel,
        whatsapp_channel: NotificationChannel,
        on_attempt: Optional[AttemptListener] = None,
    ):
        self.email_channel = email_channel
        self.whatsapp_channel = whatsapp_channel
        self.on_attempt = on_attempt
        self.logger = logging.getLogger(self.__class__.__name__)

    @staticmethod
    def validate(notification_type: str, recipients: Iterable[Recipient]) -> None:
        """Reject the whole batch up front: unknown type or a recipient without email."""
        if notification_type not in NOTIFICATION_TYPES:
            raise InvalidRequestError(
                f"Unknown notificationType '{notification_type}'; expected one of: {', '.join(NOTIFICATION_TYPES)}"
            )
        for r in recipients:
            if not r.email:
                raise InvalidRequestError("Every recipient needs an email")

    def _record(self, notification_type: str, attempt: Dict[str, Any]) -> None:
        if self.on_attempt is None:
            return
        try:
            self.on_attempt(notification_type, attempt)
        except Exception as e:
            self.logger.error(f"Failed to record notification attempt: {e}")

    def dispatch(self, recipients: List[Recipient], notification_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Send to every recipient. Returns {sent, failed, results}; sent + failed == len(results)."""
        self.validate(notification_type, recipients)
        results: List[Dict[str, Any]] = []
        for recipient in recipients:
            attempt = _attempt(
                self.email_channel.name,
                recipient.email,
                self.email_channel.send(recipient.email, notification_type, data),
            )
            results.append(attempt)
            self._record(notification_type, attempt)

            if recipient.phone:
                attempt = _attempt(
                    self.whatsapp_channel.name,
                    recipient.phone,
                    self.whatsapp_channel.send(recipient.phone, notification_type, data),
                )
                results.append(attempt)
                self._record(notification_type, attempt)

        sent = sum(1 for r in results if r["success"])
        failed = len(results) - sent
        self.logger.info(
            f"Dispatched {notification_type} to {len(recipients)} recipients: {sent} sent, {failed} failed"
        )
        return {"sent": sent, "failed": failed, "results": results}
