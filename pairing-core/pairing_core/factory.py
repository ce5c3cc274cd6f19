"""
Engine Factory
==============
Wires stores, strategies, providers and collaborators into a
PairingEngine.
"""

import time
from typing import Callable, List, Optional
import structlog

from pairing_core.channels import (
    BackupCodeStrategy,
    CallStrategy,
    ChannelRegistry,
    EmailStrategy,
    PrimaryCodeStrategy,
    SMSStrategy,
)
from pairing_core.collaborators import (
    AlternativeAuth,
    EmailHandoffAuth,
    ProtocolClient,
    SessionDirectory,
    SessionService,
    StaticSessionDirectory,
    SupportDesk,
)
from pairing_core.config import PairingConfig
from pairing_core.engine import PairingEngine
from pairing_core.fallback import FallbackExecutor, FallbackSelector, always_capable
from pairing_core.fallback.selector import CapabilityCheck
from pairing_core.providers import (
    DeliveryProvider,
    EmailProvider,
    SMSProvider,
    SMTPEmailProvider,
    TwilioClient,
    TwilioSMSProvider,
    TwilioVoiceProvider,
    VoiceProvider,
)
from pairing_core.stats import PairingMetrics
from pairing_core.store import AttemptCounter, BackupCodeStore, CredentialStore, RateCounter
from pairing_core.verification import VerificationEngine

logger = structlog.get_logger(__name__)


def build_engine(
    config: Optional[PairingConfig] = None,
    sms_provider: Optional[SMSProvider] = None,
    voice_provider: Optional[VoiceProvider] = None,
    email_provider: Optional[EmailProvider] = None,
    directory: Optional[SessionDirectory] = None,
    support_desk: Optional[SupportDesk] = None,
    session_service: Optional[SessionService] = None,
    alternative_auth: Optional[AlternativeAuth] = None,
    protocol_client: Optional[ProtocolClient] = None,
    capability_check: CapabilityCheck = always_capable,
    metrics: Optional[PairingMetrics] = None,
    clock: Callable[[], float] = time.time,
) -> PairingEngine:
    """
    Build a PairingEngine from explicit collaborators.

    A channel whose provider is None stays registered but reports
    ChannelUnavailable, which the engine treats as a fallback trigger.

    Args:
        config: Engine configuration (read from the environment if None)
        capability_check: Predicate deciding manual-tier prerequisites

    Returns:
        Configured PairingEngine
    """
    config = config or PairingConfig()
    metrics = metrics or PairingMetrics()
    directory = directory or StaticSessionDirectory(default_email=config.default_email)
    alternative_auth = alternative_auth or EmailHandoffAuth(directory)

    store = CredentialStore(clock=clock)
    attempts = AttemptCounter(config.max_attempts, config.attempt_ttl_seconds, clock=clock)
    rates = RateCounter(config.rate_limit, config.rate_window_seconds, clock=clock)
    backup_codes = BackupCodeStore()

    registry = ChannelRegistry(
        strategies=[
            PrimaryCodeStrategy(),
            SMSStrategy(sms_provider),
            CallStrategy(voice_provider),
            EmailStrategy(email_provider, directory),
            BackupCodeStrategy(backup_codes),
        ],
        store=store,
        attempts=attempts,
        rates=rates,
        enabled=config.enabled_channels,
        metrics=metrics,
        clock=clock,
    )
    executor = FallbackExecutor(
        registry,
        FallbackSelector(capability_check=capability_check),
        support_desk=support_desk,
        session_service=session_service,
        alternative_auth=alternative_auth,
        metrics=metrics,
        support_contact=config.support_contact,
        clock=clock,
    )
    verifier = VerificationEngine(store, attempts, backup_codes, metrics)

    providers: List[DeliveryProvider] = [
        p for p in (sms_provider, voice_provider, email_provider) if p is not None
    ]

    logger.info(
        "pairing_engine_built",
        channels=[c.value for c in registry.enabled_channels()],
        sms=sms_provider is not None,
        call=voice_provider is not None,
        email=email_provider is not None,
    )
    return PairingEngine(
        registry,
        verifier,
        executor,
        backup_codes=backup_codes,
        protocol_client=protocol_client,
        escalate_after_mismatches=config.escalate_after_mismatches,
        providers=providers,
        clock=clock,
    )


def build_engine_from_env(
    support_desk: Optional[SupportDesk] = None,
    session_service: Optional[SessionService] = None,
    protocol_client: Optional[ProtocolClient] = None,
) -> PairingEngine:
    """
    Build a PairingEngine from environment variables.

    Twilio and SMTP providers are wired only when their credentials are
    set; the SMS and voice providers share one Twilio client.
    """
    config = PairingConfig()

    sms_provider = voice_provider = None
    if config.twilio.is_configured:
        client = TwilioClient(config.twilio)
        sms_provider = TwilioSMSProvider(client)
        voice_provider = TwilioVoiceProvider(client)
    else:
        logger.warning("twilio_not_configured")

    email_provider = None
    if config.smtp.is_configured:
        email_provider = SMTPEmailProvider(config.smtp)
    else:
        logger.warning("smtp_not_configured")

    engine = build_engine(
        config,
        sms_provider=sms_provider,
        voice_provider=voice_provider,
        email_provider=email_provider,
        support_desk=support_desk,
        session_service=session_service,
        protocol_client=protocol_client,
    )
    # Both Twilio providers close the same client; closing it once is enough.
    if voice_provider is not None:
        engine.providers.remove(voice_provider)
    return engine
