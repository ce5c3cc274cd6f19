"""
Pairing Configuration
=====================
Configuration for the pairing engine and its delivery providers.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pairing_core.models import Channel


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_channels(name: str) -> List[Channel]:
    raw = os.environ.get(name, "")
    if not raw.strip():
        return list(Channel)
    return [Channel(item.strip().lower()) for item in raw.split(",") if item.strip()]


@dataclass
class TwilioConfig:
    """Credentials for the Twilio SMS and voice APIs."""
    account_sid: str = field(default_factory=lambda: os.environ.get("TWILIO_ACCOUNT_SID", ""))
    auth_token: str = field(default_factory=lambda: os.environ.get("TWILIO_AUTH_TOKEN", ""))
    from_number: str = field(default_factory=lambda: os.environ.get("TWILIO_PHONE_NUMBER", ""))
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token)


@dataclass
class SMTPConfig:
    """Settings for the SMTP email provider."""
    host: str = field(default_factory=lambda: os.environ.get("SMTP_HOST", ""))
    port: int = field(default_factory=lambda: _env_int("SMTP_PORT", 587))
    username: str = field(default_factory=lambda: os.environ.get("SMTP_USER", ""))
    password: str = field(default_factory=lambda: os.environ.get("SMTP_PASS", ""))
    use_tls: bool = field(
        default_factory=lambda: os.environ.get("SMTP_SECURE", "false").lower() == "true"
    )
    from_email: str = field(
        default_factory=lambda: os.environ.get("SMTP_FROM", "pairing@localhost")
    )
    timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.username)


@dataclass
class PairingConfig:
    """Limits, channel selection and support contact for the engine."""
    max_attempts: int = field(default_factory=lambda: _env_int("PAIRING_MAX_ATTEMPTS", 3))
    attempt_ttl_seconds: int = 600
    rate_limit: int = field(default_factory=lambda: _env_int("PAIRING_RATE_LIMIT", 5))
    rate_window_seconds: int = field(
        default_factory=lambda: _env_int("PAIRING_RATE_WINDOW_SECONDS", 300)
    )
    enabled_channels: List[Channel] = field(
        default_factory=lambda: _env_channels("PAIRING_ENABLED_CHANNELS")
    )
    escalate_after_mismatches: int = field(
        default_factory=lambda: _env_int("PAIRING_ESCALATE_AFTER_MISMATCHES", 3)
    )
    support_email: str = field(
        default_factory=lambda: os.environ.get("PAIRING_SUPPORT_EMAIL", "support@localhost")
    )
    support_phone: str = field(
        default_factory=lambda: os.environ.get("PAIRING_SUPPORT_PHONE", "")
    )
    support_url: str = field(
        default_factory=lambda: os.environ.get("PAIRING_SUPPORT_URL", "")
    )
    default_email: Optional[str] = field(
        default_factory=lambda: os.environ.get("PAIRING_DEFAULT_EMAIL") or None
    )
    twilio: TwilioConfig = field(default_factory=TwilioConfig)
    smtp: SMTPConfig = field(default_factory=SMTPConfig)

    @property
    def support_contact(self) -> Dict[str, str]:
        contact = {"email": self.support_email}
        if self.support_phone:
            contact["phone"] = self.support_phone
        if self.support_url:
            contact["url"] = self.support_url
        return contact
