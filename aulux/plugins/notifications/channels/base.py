"""
Delivery channel interface. A channel never raises for a failed delivery;
it returns DeliveryResult(success=False, error=...) instead.
"""
from abc import ABC, abstractmethod
from collections import namedtuple
from typing import Any, Dict

DeliveryResult = namedtuple(
    "DeliveryResult",
    [
        "success",
        "id",     # provider message id (Resend id, Twilio SID)
        "error",
        "code",   # provider error code, if any
    ],
    defaults=(False, None, None, None),
)


class NotificationChannel(ABC):
    """One way of reaching a recipient (email, WhatsApp)."""

    name = ""

    @abstractmethod
    def send(self, address: str, notification_type: str, data: Dict[str, Any]) -> DeliveryResult:
        """Deliver one message to address. Failures are returned, not raised."""
        pass
