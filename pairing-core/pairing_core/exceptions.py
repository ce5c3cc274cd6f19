"""
Pairing Exceptions
==================
Error taxonomy for code generation, verification and fallback handling.

Every error carries a stable ``code`` string. The engine converts these
into structured results, so only unexpected faults escape as exceptions.
"""

from typing import Any, Dict, List, Optional


class PairingError(Exception):
    """Base exception for all pairing errors."""

    code = "PAIRING_ERROR"

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.details}


class InvalidPhone(PairingError):
    """Raised when a phone number fails validation."""
    code = "INVALID_PHONE"


class ChannelUnavailable(PairingError):
    """Raised when a channel is disabled or has no provider configured."""

    code = "CHANNEL_UNAVAILABLE"

    def __init__(self, channel: str, reason: Optional[str] = None):
        self.channel = channel
        super().__init__(reason or f"Method {channel} is not available", channel=channel)


class DeliveryFailed(PairingError):
    """Raised when a provider could not deliver a generated code."""

    code = "DELIVERY_FAILED"

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(message, channel=channel)


class CredentialExpired(PairingError):
    """Raised when no live credential exists for a session and channel."""
    code = "CODE_EXPIRED"


class CodeMismatch(PairingError):
    """Raised when a submitted code does not match the stored credential."""

    code = "INVALID_CODE"

    def __init__(self, remaining_attempts: int, message: str = "Invalid pairing code"):
        self.remaining_attempts = remaining_attempts
        super().__init__(message, attempts_left=remaining_attempts)


class RateLimited(PairingError):
    """Raised when too many codes were requested for a phone and channel."""

    code = "RATE_LIMITED"

    def __init__(self, retry_after: int, reset_at: Optional[int] = None, message: Optional[str] = None):
        self.retry_after = retry_after
        self.reset_at = reset_at
        minutes = max(1, -(-retry_after // 60))
        details = {"retry_after": retry_after}
        if reset_at is not None:
            details["reset_at"] = reset_at
        super().__init__(
            message or f"Too many attempts. Try again in {minutes} minutes.",
            **details,
        )


class NoFallbackAvailable(PairingError):
    """Raised when the fallback catalog has no candidate for a failure."""
    code = "NO_FALLBACK_AVAILABLE"


class AllMethodsFailed(PairingError):
    """Raised when every enabled channel has been tried without success."""

    code = "ALL_METHODS_FAILED"

    def __init__(self, original_method: str, tried: List[str]):
        self.original_method = original_method
        self.tried = tried
        super().__init__(
            "All pairing methods have failed",
            original_method=original_method,
            tried_fallbacks=tried,
        )


class CriticalFailure(PairingError):
    """Raised when emergency escalation is exhausted."""

    code = "CRITICAL_FAILURE"

    def __init__(self, support: Dict[str, str]):
        self.support = support
        super().__init__(
            "Critical failure - please contact support",
            support=support,
        )


class DeliveryError(Exception):
    """Raised by delivery providers when a send or call fails."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")
