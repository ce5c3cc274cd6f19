"""
Fallback Handling
=================
Failure classification, fallback selection and recovery execution.
"""

from .models import (
    Severity,
    escalate,
    ErrorType,
    Tier,
    FallbackAction,
    FailureContext,
    FailureAnalysis,
    FallbackDescriptor,
    FallbackRequest,
    ActionResult,
    FallbackResult,
)
from .classifier import classify, ERROR_CATEGORIES
from .catalog import DEFAULT_CATALOG, by_tier
from .selector import FallbackSelector, always_capable
from .executor import FallbackExecutor, RETRY_DELAYS

__all__ = [
    # Models
    "Severity",
    "escalate",
    "ErrorType",
    "Tier",
    "FallbackAction",
    "FailureContext",
    "FailureAnalysis",
    "FallbackDescriptor",
    "FallbackRequest",
    "ActionResult",
    "FallbackResult",
    # Classifier
    "classify",
    "ERROR_CATEGORIES",
    # Catalog
    "DEFAULT_CATALOG",
    "by_tier",
    # Selection and execution
    "FallbackSelector",
    "always_capable",
    "FallbackExecutor",
    "RETRY_DELAYS",
]
