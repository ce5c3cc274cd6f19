"""
Shared fixtures for pairing-core tests.
"""

import pytest

PHONE = "+15551234567"
SESSION = "WA_TEST1"


class FakeClock:
    """Controllable clock; call it to read, ``advance`` to move forward."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sms_provider():
    from pairing_core.providers import RecordingSMSProvider
    return RecordingSMSProvider()


@pytest.fixture
def voice_provider():
    from pairing_core.providers import RecordingVoiceProvider
    return RecordingVoiceProvider()


@pytest.fixture
def email_provider():
    from pairing_core.providers import RecordingEmailProvider
    return RecordingEmailProvider()


@pytest.fixture
def support_desk():
    from pairing_core.collaborators import InMemorySupportDesk
    return InMemorySupportDesk()


@pytest.fixture
def session_service():
    from pairing_core.collaborators import InMemorySessionService
    return InMemorySessionService()


@pytest.fixture
def config():
    from pairing_core.config import PairingConfig
    from pairing_core.models import Channel

    return PairingConfig(
        max_attempts=3,
        rate_limit=5,
        rate_window_seconds=300,
        enabled_channels=list(Channel),
        escalate_after_mismatches=3,
        support_email="support@example.com",
        support_phone="+15550000000",
        support_url="",
        default_email="owner@example.com",
    )


@pytest.fixture
def engine(config, clock, sms_provider, voice_provider, email_provider, support_desk, session_service):
    """Fully wired engine with recording providers and a fake clock."""
    from pairing_core.factory import build_engine

    return build_engine(
        config,
        sms_provider=sms_provider,
        voice_provider=voice_provider,
        email_provider=email_provider,
        support_desk=support_desk,
        session_service=session_service,
        clock=clock,
    )
