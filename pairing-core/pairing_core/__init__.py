"""
Pairing Core Library
====================
Device-pairing credential issuance, verification and fallback handling.
"""

__version__ = "0.1.0"

# Models
from pairing_core.models import Channel, Credential

# Exceptions
from pairing_core.exceptions import (
    PairingError,
    InvalidPhone,
    ChannelUnavailable,
    DeliveryFailed,
    CredentialExpired,
    CodeMismatch,
    RateLimited,
    NoFallbackAvailable,
    AllMethodsFailed,
    CriticalFailure,
    DeliveryError,
)

# Config
from pairing_core.config import PairingConfig, TwilioConfig, SMTPConfig

# Logging
from pairing_core.logging_config import setup_logging

# Phone
from pairing_core.phone import validate_phone, mask_phone

# Storage
from pairing_core.store import (
    CredentialStore,
    BackupCodeStore,
    AttemptCounter,
    RateCounter,
    RateLimitInfo,
)

# Channels
from pairing_core.channels import (
    ChannelSpec,
    CHANNEL_SPECS,
    ChannelStrategy,
    PrimaryCodeStrategy,
    SMSStrategy,
    CallStrategy,
    EmailStrategy,
    BackupCodeStrategy,
    ChannelRegistry,
)

# Verification
from pairing_core.verification import VerificationEngine, VerificationOutcome

# Fallback
from pairing_core.fallback import (
    Severity,
    ErrorType,
    Tier,
    FallbackAction,
    FailureContext,
    FailureAnalysis,
    FallbackDescriptor,
    FallbackResult,
    DEFAULT_CATALOG,
    classify,
    FallbackSelector,
    FallbackExecutor,
)

# Collaborators
from pairing_core.collaborators import (
    SessionDirectory,
    StaticSessionDirectory,
    ProtocolClient,
    SupportDesk,
    InMemorySupportDesk,
    SessionService,
    InMemorySessionService,
    AlternativeAuth,
    EmailHandoffAuth,
    new_session_id,
)

# Metrics
from pairing_core.stats import PairingMetrics

# Engine
from pairing_core.engine import PairingEngine, PairingResult, VerificationResult
from pairing_core.factory import build_engine, build_engine_from_env

__all__ = [
    # Models
    "Channel",
    "Credential",
    # Exceptions
    "PairingError",
    "InvalidPhone",
    "ChannelUnavailable",
    "DeliveryFailed",
    "CredentialExpired",
    "CodeMismatch",
    "RateLimited",
    "NoFallbackAvailable",
    "AllMethodsFailed",
    "CriticalFailure",
    "DeliveryError",
    # Config
    "PairingConfig",
    "TwilioConfig",
    "SMTPConfig",
    # Logging
    "setup_logging",
    # Phone
    "validate_phone",
    "mask_phone",
    # Storage
    "CredentialStore",
    "BackupCodeStore",
    "AttemptCounter",
    "RateCounter",
    "RateLimitInfo",
    # Channels
    "ChannelSpec",
    "CHANNEL_SPECS",
    "ChannelStrategy",
    "PrimaryCodeStrategy",
    "SMSStrategy",
    "CallStrategy",
    "EmailStrategy",
    "BackupCodeStrategy",
    "ChannelRegistry",
    # Verification
    "VerificationEngine",
    "VerificationOutcome",
    # Fallback
    "Severity",
    "ErrorType",
    "Tier",
    "FallbackAction",
    "FailureContext",
    "FailureAnalysis",
    "FallbackDescriptor",
    "FallbackResult",
    "DEFAULT_CATALOG",
    "classify",
    "FallbackSelector",
    "FallbackExecutor",
    # Collaborators
    "SessionDirectory",
    "StaticSessionDirectory",
    "ProtocolClient",
    "SupportDesk",
    "InMemorySupportDesk",
    "SessionService",
    "InMemorySessionService",
    "AlternativeAuth",
    "EmailHandoffAuth",
    "new_session_id",
    # Metrics
    "PairingMetrics",
    # Engine
    "PairingEngine",
    "PairingResult",
    "VerificationResult",
    "build_engine",
    "build_engine_from_env",
]
