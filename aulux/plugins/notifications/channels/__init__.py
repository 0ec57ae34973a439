from .base import DeliveryResult, NotificationChannel
from .email import ResendEmailChannel
from .whatsapp import TwilioWhatsAppChannel

__all__ = ["DeliveryResult", "NotificationChannel", "ResendEmailChannel", "TwilioWhatsAppChannel"]
