"""
Fallback Selector
=================
Picks the best fallback strategy for a classified failure.
"""

from typing import Callable, Iterable, List, Optional

from .catalog import DEFAULT_CATALOG
from .models import FailureAnalysis, FallbackDescriptor, Severity, Tier

CapabilityCheck = Callable[[FallbackDescriptor, Optional[str]], bool]


def always_capable(descriptor: FallbackDescriptor, session_id: Optional[str]) -> bool:
    """Treat every manual-tier prerequisite as satisfied."""
    return True


class FallbackSelector:
    """
    Tier-gated selection over a static catalog.

    - automatic: any descriptor whose conditions overlap the failure
    - manual: severity >= HIGH and the capability check passes
    - emergency: severity == CRITICAL and conditions overlap

    The single lowest priority number wins, ties broken by id.
    """

    def __init__(
        self,
        catalog: Iterable[FallbackDescriptor] = DEFAULT_CATALOG,
        capability_check: CapabilityCheck = always_capable,
    ):
        self.catalog = tuple(catalog)
        self.capability_check = capability_check

    def _eligible(
        self,
        descriptor: FallbackDescriptor,
        analysis: FailureAnalysis,
        session_id: Optional[str],
    ) -> bool:
        if not descriptor.enabled:
            return False
        if descriptor.tier is Tier.AUTOMATIC:
            return descriptor.matches(analysis.conditions)
        if descriptor.tier is Tier.MANUAL:
            return (
                analysis.severity >= Severity.HIGH
                and self.capability_check(descriptor, session_id)
            )
        return (
            analysis.severity is Severity.CRITICAL
            and descriptor.matches(analysis.conditions)
        )

    def candidates(
        self,
        analysis: FailureAnalysis,
        session_id: Optional[str] = None,
    ) -> List[FallbackDescriptor]:
        """All eligible descriptors, best first."""
        eligible = [d for d in self.catalog if self._eligible(d, analysis, session_id)]
        return sorted(eligible, key=lambda d: (d.priority, d.id))

    def select(
        self,
        analysis: FailureAnalysis,
        session_id: Optional[str] = None,
    ) -> Optional[FallbackDescriptor]:
        candidates = self.candidates(analysis, session_id)
        return candidates[0] if candidates else None
