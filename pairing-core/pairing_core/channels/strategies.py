"""
Channel Strategies
==================
One strategy per verification channel. Each knows how to generate a
code, deliver it, format it for display and explain how to use it.
"""

from abc import ABC
from typing import ClassVar, List, Optional, Tuple
import structlog

from pairing_core.collaborators import SessionDirectory
from pairing_core.exceptions import ChannelUnavailable, DeliveryError, DeliveryFailed
from pairing_core.models import Channel, Credential
from pairing_core.phone import mask_phone
from pairing_core.providers.base import EmailProvider, SMSProvider, VoiceProvider
from pairing_core.store.backup_codes import BackupCodeStore
from .codes import generate_backup_code, generate_numeric_code, group_code
from .models import CHANNEL_SPECS, ChannelSpec

logger = structlog.get_logger(__name__)

APP_NAME = "WhatsApp"


class ChannelStrategy(ABC):
    """Base class for channel strategies."""

    channel: ClassVar[Channel]
    steps: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, spec: Optional[ChannelSpec] = None):
        self.spec = spec or CHANNEL_SPECS[self.channel]

    @property
    def is_available(self) -> bool:
        """Whether every collaborator the channel needs is configured."""
        return True

    @property
    def unavailable_reason(self) -> str:
        return f"Method {self.channel.value} is not available"

    @property
    def expiry_minutes(self) -> int:
        return self.spec.timeout // 60

    def generate_code(self) -> str:
        return generate_numeric_code(self.spec.code_length)

    async def deliver(self, phone: str, session_id: str, code: str) -> None:
        """Send the code to the user. Display-only channels do nothing."""

    async def generate(self, phone: str, session_id: str, now: float) -> Credential:
        """
        Generate and deliver a new credential.

        Raises:
            ChannelUnavailable: If a required collaborator is missing
            DeliveryFailed: If the provider call errors
        """
        if not self.is_available:
            raise ChannelUnavailable(self.channel.value, self.unavailable_reason)

        code = self.generate_code()
        await self.deliver(phone, session_id, code)

        return Credential(
            session_id=session_id,
            channel=self.channel,
            code=code,
            owner_phone=phone,
            issued_at=now,
            expires_at=now + self.spec.timeout if self.spec.timeout else None,
            permanent=not self.spec.timeout,
        )

    def format(self, code: str) -> str:
        return group_code(code, self.spec.group_size)

    def instructions(self) -> List[str]:
        return list(self.steps)


class PrimaryCodeStrategy(ChannelStrategy):
    """8-digit code entered on the phone under Linked Devices."""

    channel = Channel.PRIMARY
    steps = (
        f"Open {APP_NAME} on your phone",
        "Tap Menu → Linked Devices",
        'Tap "Link a Device"',
        "Enter the 8-digit code shown above",
        'Tap "Link" to complete pairing',
    )


class SMSStrategy(ChannelStrategy):
    """6-digit code sent by text message."""

    channel = Channel.SMS
    steps = (
        "Check your SMS messages",
        "Find the message with your 6-digit code",
        "Enter the code in the verification field",
        "Submit to complete pairing",
    )

    def __init__(self, provider: Optional[SMSProvider] = None, spec: Optional[ChannelSpec] = None):
        super().__init__(spec)
        self.provider = provider

    @property
    def is_available(self) -> bool:
        return self.provider is not None

    @property
    def unavailable_reason(self) -> str:
        return "SMS service not configured"

    async def deliver(self, phone: str, session_id: str, code: str) -> None:
        body = (
            f"Your {APP_NAME} pairing code is: {code}. "
            f"This code expires in {self.expiry_minutes} minutes."
        )
        try:
            await self.provider.send(phone, body)
        except DeliveryError as e:
            logger.error("sms_delivery_failed", to=mask_phone(phone), error=str(e))
            raise DeliveryFailed(self.channel.value, "Failed to send SMS") from e


class CallStrategy(ChannelStrategy):
    """6-digit code read aloud twice by an automated call."""

    channel = Channel.CALL
    steps = (
        "Answer the incoming call",
        "Listen carefully to the code",
        "Enter the code in the verification field",
        "Submit to complete pairing",
    )

    def __init__(self, provider: Optional[VoiceProvider] = None, spec: Optional[ChannelSpec] = None):
        super().__init__(spec)
        self.provider = provider

    @property
    def is_available(self) -> bool:
        return self.provider is not None

    @property
    def unavailable_reason(self) -> str:
        return "Call service not configured"

    def script(self, code: str) -> str:
        """Spoken script; paragraphs are separated by a pause."""
        digits = " ".join(code)
        return (
            f"Your {APP_NAME} pairing code is: {digits}.\n\n"
            f"I repeat: {digits}. "
            f"This code expires in {self.expiry_minutes} minutes."
        )

    async def deliver(self, phone: str, session_id: str, code: str) -> None:
        try:
            await self.provider.call(phone, self.script(code))
        except DeliveryError as e:
            logger.error("call_delivery_failed", to=mask_phone(phone), error=str(e))
            raise DeliveryFailed(self.channel.value, "Failed to make call") from e


class EmailStrategy(ChannelStrategy):
    """6-digit code sent to the email registered for the session."""

    channel = Channel.EMAIL
    steps = (
        "Check your email inbox",
        f'Find the email with subject "{APP_NAME} Pairing Code"',
        "Copy the 6-digit code from the email",
        "Enter the code in the verification field",
        "Submit to complete pairing",
    )

    def __init__(
        self,
        provider: Optional[EmailProvider] = None,
        directory: Optional[SessionDirectory] = None,
        spec: Optional[ChannelSpec] = None,
    ):
        super().__init__(spec)
        self.provider = provider
        self.directory = directory

    @property
    def is_available(self) -> bool:
        return self.provider is not None and self.directory is not None

    @property
    def unavailable_reason(self) -> str:
        return "Email service not configured"

    def render(self, session_id: str, code: str) -> str:
        return (
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
            f"<h2>{APP_NAME} Pairing Code</h2>"
            f"<p>Your pairing code for session <strong>{session_id}</strong> is:</p>"
            '<div style="background: #f4f4f4; padding: 20px; text-align: center; '
            'font-size: 32px; letter-spacing: 5px; margin: 20px 0;">'
            f"<strong>{code}</strong></div>"
            f"<p>Enter this code in {APP_NAME} Web to link your device.</p>"
            f"<p>This code expires in {self.expiry_minutes} minutes.</p>"
            '<hr><p style="color: #666; font-size: 12px;">'
            "If you didn't request this code, please ignore this email.</p></div>"
        )

    async def deliver(self, phone: str, session_id: str, code: str) -> None:
        address = await self.directory.resolve_email(session_id)
        if not address:
            raise ChannelUnavailable(self.channel.value, "No email registered for this session")

        try:
            await self.provider.send(
                address,
                f"Your {APP_NAME} Pairing Code",
                self.render(session_id, code),
            )
        except DeliveryError as e:
            logger.error("email_delivery_failed", session_id=session_id, error=str(e))
            raise DeliveryFailed(self.channel.value, "Failed to send email") from e


class BackupCodeStrategy(ChannelStrategy):
    """Permanent 12-character backup code, stored outside the TTL cache."""

    channel = Channel.BACKUP
    steps = (
        "Use your pre-generated backup code",
        "Enter the 12-character code",
        "Submit to complete pairing",
    )

    def __init__(self, backup_codes: BackupCodeStore, spec: Optional[ChannelSpec] = None):
        super().__init__(spec)
        self.backup_codes = backup_codes

    def generate_code(self) -> str:
        return generate_backup_code(self.spec.code_length // 2)

    async def generate(self, phone: str, session_id: str, now: float) -> Credential:
        credential = await super().generate(phone, session_id, now)
        self.backup_codes.save(credential)
        return credential
