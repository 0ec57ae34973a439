from .dispatcher import NotificationDispatcher, Recipient
from .templates import NOTIFICATION_TYPES

__all__ = ["NotificationDispatcher", "Recipient", "NOTIFICATION_TYPES"]
