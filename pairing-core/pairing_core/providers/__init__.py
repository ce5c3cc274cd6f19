"""
Delivery Providers
==================
Adapters for SMS, voice and email delivery of pairing codes.
"""

from .base import (
    DeliveryReceipt,
    DeliveryProvider,
    SMSProvider,
    VoiceProvider,
    EmailProvider,
)
from .twilio import TwilioClient, TwilioSMSProvider, TwilioVoiceProvider
from .smtp import SMTPEmailProvider
from .memory import RecordingSMSProvider, RecordingVoiceProvider, RecordingEmailProvider

__all__ = [
    # Interfaces
    "DeliveryReceipt",
    "DeliveryProvider",
    "SMSProvider",
    "VoiceProvider",
    "EmailProvider",
    # Twilio
    "TwilioClient",
    "TwilioSMSProvider",
    "TwilioVoiceProvider",
    # SMTP
    "SMTPEmailProvider",
    # In-memory
    "RecordingSMSProvider",
    "RecordingVoiceProvider",
    "RecordingEmailProvider",
]
