"""
Failure Classifier
==================
Maps a raw failure message plus context to a FailureAnalysis.
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from pairing_core.models import Channel
from .models import ErrorType, FailureAnalysis, FailureContext, Severity, escalate


@dataclass(frozen=True)
class ErrorCategory:
    error_type: ErrorType
    severity: Severity
    keywords: Tuple[str, ...]
    conditions: Tuple[str, ...]
    suggestions: Tuple[str, ...]


# Order matters: the first matching category names the error type.
ERROR_CATEGORIES: Tuple[ErrorCategory, ...] = (
    ErrorCategory(
        error_type=ErrorType.EXPIRED,
        severity=Severity.MEDIUM,
        keywords=("expired", "expire", "timeout", "timed out", "stale"),
        conditions=("code_expired",),
        suggestions=("Generate a new pairing code", "Enter the code promptly after receiving it"),
    ),
    ErrorCategory(
        error_type=ErrorType.INVALID,
        severity=Severity.LOW,
        keywords=("invalid", "wrong", "mismatch", "incorrect"),
        conditions=("code_failed",),
        suggestions=("Double-check the code you entered", "Try a different pairing method"),
    ),
    ErrorCategory(
        error_type=ErrorType.RATE_LIMITED,
        severity=Severity.HIGH,
        keywords=("rate limit", "rate_limit", "too many"),
        conditions=("rate_limited",),
        suggestions=("Wait before requesting another code",),
    ),
    ErrorCategory(
        error_type=ErrorType.NETWORK,
        severity=Severity.HIGH,
        keywords=("connection", "network", "offline", "unreachable"),
        conditions=("connection_timeout", "server_issues"),
        suggestions=("Check your internet connection", "Retry in a few minutes"),
    ),
    ErrorCategory(
        error_type=ErrorType.PERSISTENT,
        severity=Severity.CRITICAL,
        keywords=("all methods", "all pairing methods", "persistent", "repeatedly"),
        conditions=("all_failed", "persistent_errors"),
        suggestions=("Start a new pairing session", "Contact support"),
    ),
)

CHANNEL_FAILURE_CONDITIONS: Mapping[Channel, str] = {
    Channel.PRIMARY: "code_failed",
    Channel.SMS: "sms_failed",
    Channel.CALL: "call_failed",
    Channel.EMAIL: "email_failed",
    Channel.BACKUP: "backup_failed",
}

MULTIPLE_ATTEMPTS_THRESHOLD = 3
PROLONGED_ISSUE_MS = 300_000


def classify(error_message: str, context: Optional[FailureContext] = None) -> FailureAnalysis:
    """
    Classify a failure.

    Args:
        error_message: Raw error text (matched case-insensitively)
        context: Attempt count, elapsed time and failed channel

    Returns:
        FailureAnalysis with error type, severity, conditions and suggestions
    """
    context = context or FailureContext()
    text = (error_message or "").lower()

    matched = [c for c in ERROR_CATEGORIES if any(k in text for k in c.keywords)]

    if matched:
        error_type = matched[0].error_type
        severity = max(c.severity for c in matched)
    else:
        error_type = ErrorType.UNKNOWN
        severity = Severity.LOW

    conditions = {tag for c in matched for tag in c.conditions}
    suggestions = [s for c in matched for s in c.suggestions]

    if context.channel is not None:
        conditions.add(CHANNEL_FAILURE_CONDITIONS[context.channel])

    if context.attempts > MULTIPLE_ATTEMPTS_THRESHOLD:
        severity = escalate(severity, Severity.MEDIUM)
        conditions.add("multiple_attempts")
        suggestions.append("Try an alternative pairing method")

    if context.elapsed_ms > PROLONGED_ISSUE_MS:
        severity = escalate(severity, Severity.HIGH)
        conditions.add("prolonged_issue")
        suggestions.append("Consider contacting support")

    if not suggestions:
        suggestions.append("Retry pairing")

    return FailureAnalysis(
        error_type=error_type,
        severity=severity,
        conditions=frozenset(conditions),
        suggestions=tuple(dict.fromkeys(suggestions)),
    )
