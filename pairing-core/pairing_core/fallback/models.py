"""
Fallback Models
===============
Data models and enums for failure analysis and fallback handling.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from pairing_core.models import Channel, Credential


class Severity(IntEnum):
    """Failure impact, totally ordered from LOW to CRITICAL."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.lower()


def escalate(current: Severity, floor: Severity) -> Severity:
    """Raise ``current`` to at least ``floor``. Never lowers severity."""
    return current if current >= floor else floor


class ErrorType(str, Enum):
    EXPIRED = "expired"
    INVALID = "invalid"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    PERSISTENT = "persistent"
    UNKNOWN = "unknown"


class Tier(str, Enum):
    """Fallback tiers, by increasing human involvement."""
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    EMERGENCY = "emergency"


class FallbackAction(str, Enum):
    ROTATE_CHANNEL = "rotate_method"
    REGENERATE_CODE = "regenerate_code"
    REFRESH_SESSION = "refresh_session"
    USE_BACKUP = "use_backup"
    ALTERNATIVE_AUTH = "alternative_auth"
    CONTACT_SUPPORT = "contact_support"
    CREATE_NEW_SESSION = "create_new_session"
    SWITCH_DEVICE = "switch_device"
    DELAYED_RETRY = "delayed_retry"
    RESET_STATE = "reset_system"


@dataclass(frozen=True)
class FailureContext:
    """Circumstances of a failure, supplied by the caller."""
    attempts: int = 0
    elapsed_ms: float = 0
    channel: Optional[Channel] = None  # set for generation failures


@dataclass(frozen=True)
class FailureAnalysis:
    """Classification of one failure. Recomputed per failure."""
    error_type: ErrorType
    severity: Severity
    conditions: FrozenSet[str]
    suggestions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type.value,
            "severity": self.severity.label,
            "conditions": sorted(self.conditions),
            "suggestions": list(self.suggestions),
        }


@dataclass(frozen=True)
class FallbackDescriptor:
    """
    Catalog entry for a fallback strategy.

    Automatic and emergency entries match on ``conditions`` (any overlap
    qualifies); manual entries list capability ``requires`` instead.
    """
    id: str
    name: str
    description: str
    tier: Tier
    priority: int
    action: FallbackAction
    conditions: FrozenSet[str] = frozenset()
    requires: FrozenSet[str] = frozenset()
    enabled: bool = True

    def matches(self, conditions: FrozenSet[str]) -> bool:
        return bool(self.conditions & conditions)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "tier": self.tier.value,
            "priority": self.priority,
            "action": self.action.value,
        }
        if self.conditions:
            data["conditions"] = sorted(self.conditions)
        if self.requires:
            data["requires"] = sorted(self.requires)
        return data


@dataclass(frozen=True)
class FallbackRequest:
    """The failed pairing step a fallback should recover."""
    session_id: str
    phone: str
    channel: Channel
    error_message: str = ""
    tried: Tuple[Channel, ...] = ()


@dataclass
class ActionResult:
    """Outcome of executing one fallback action."""
    success: bool
    action: str
    message: str
    payload: Dict[str, Any] = field(default_factory=dict)
    credential: Optional[Credential] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "action": self.action,
            "message": self.message,
            **self.payload,
        }


@dataclass
class FallbackResult:
    """Outcome of handling a failure, including escalation."""
    success: bool
    action: str
    message: str
    severity: Severity
    strategy_id: Optional[str] = None
    tier: Optional[Tier] = None
    escalated: bool = False
    error: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    credential: Optional[Credential] = None

    @classmethod
    def from_action(
        cls,
        descriptor: FallbackDescriptor,
        result: ActionResult,
        severity: Severity,
    ) -> "FallbackResult":
        return cls(
            success=result.success,
            action=result.action,
            message=result.message,
            severity=severity,
            strategy_id=descriptor.id,
            tier=descriptor.tier,
            payload=dict(result.payload),
            credential=result.credential,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "action": self.action,
            "message": self.message,
            "severity": self.severity.label,
            "strategy": self.strategy_id,
            "tier": self.tier.value if self.tier else None,
            "escalated": self.escalated,
            **self.payload,
        }
        if self.error:
            data["error"] = self.error
        return data
