"""
Pairing Statistics
==================
Process-lifetime counters for code generation, verification and
fallback handling, mirrored to Prometheus.
"""

import threading
from collections import deque
from typing import Any, Deque, Dict, Iterable, Optional
import structlog
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

logger = structlog.get_logger(__name__)


class PairingMetrics:
    """
    In-memory statistics with a per-instance Prometheus registry.

    Counters only ever increase; response times keep a rolling window
    of the most recent samples.
    """

    def __init__(self, sample_size: int = 100, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()

        self.total_fallbacks = 0
        self.successful_fallbacks = 0
        self.failed_fallbacks = 0
        self.by_type: Dict[str, int] = {}
        self.by_tier: Dict[str, int] = {}
        self.by_condition: Dict[str, int] = {}
        self.response_times: Deque[float] = deque(maxlen=sample_size)
        self.generation: Dict[str, Dict[str, int]] = {}
        self.verification: Dict[str, Dict[str, int]] = {}

        self._generated = Counter(
            name="pairing_codes_generated",
            documentation="Pairing code generation attempts",
            labelnames=["channel", "outcome"],
            registry=self.registry,
        )
        self._verified = Counter(
            name="pairing_verifications",
            documentation="Pairing code verification attempts",
            labelnames=["channel", "outcome"],
            registry=self.registry,
        )
        self._fallbacks = Counter(
            name="pairing_fallbacks",
            documentation="Fallback strategies executed",
            labelnames=["tier", "action", "outcome"],
            registry=self.registry,
        )
        self._fallback_duration = Histogram(
            name="pairing_fallback_duration_seconds",
            documentation="Time spent handling a failure",
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

    @staticmethod
    def _bump(table: Dict[str, Any], key: str, amount: int = 1) -> None:
        table[key] = table.get(key, 0) + amount

    def record_generation(self, channel: str, outcome: str) -> None:
        """Record a generation attempt (``success``, ``failed``, ``rate_limited``)."""
        with self._lock:
            per_channel = self.generation.setdefault(channel, {})
            self._bump(per_channel, "attempts")
            self._bump(per_channel, outcome)
        self._generated.labels(channel=channel, outcome=outcome).inc()

    def record_verification(self, channel: str, outcome: str) -> None:
        """Record a verification attempt (``success``, ``mismatch``, ``expired``)."""
        with self._lock:
            per_channel = self.verification.setdefault(channel, {})
            self._bump(per_channel, "attempts")
            self._bump(per_channel, outcome)
        self._verified.labels(channel=channel, outcome=outcome).inc()

    def record_fallback(
        self,
        tier: str,
        action: str,
        success: bool,
        duration_seconds: float,
        conditions: Iterable[str] = (),
    ) -> None:
        """Record one handled failure and its outcome."""
        with self._lock:
            self.total_fallbacks += 1
            if success:
                self.successful_fallbacks += 1
            else:
                self.failed_fallbacks += 1
            self._bump(self.by_type, action)
            self._bump(self.by_tier, tier)
            for condition in conditions:
                self._bump(self.by_condition, condition)
            self.response_times.append(duration_seconds * 1000)

        outcome = "success" if success else "failure"
        self._fallbacks.labels(tier=tier, action=action, outcome=outcome).inc()
        self._fallback_duration.observe(duration_seconds)

    @property
    def average_response_ms(self) -> float:
        with self._lock:
            if not self.response_times:
                return 0.0
            return sum(self.response_times) / len(self.response_times)

    @property
    def success_rate(self) -> float:
        """Fallback success rate as a percentage."""
        with self._lock:
            if not self.total_fallbacks:
                return 0.0
            return round(self.successful_fallbacks / self.total_fallbacks * 100, 2)

    def snapshot(self) -> Dict[str, Any]:
        """Read-only copy of all statistics."""
        average = round(self.average_response_ms, 2)
        success_rate = self.success_rate
        with self._lock:
            return {
                "total_fallbacks": self.total_fallbacks,
                "successful_fallbacks": self.successful_fallbacks,
                "failed_fallbacks": self.failed_fallbacks,
                "success_rate": success_rate,
                "average_response_ms": average,
                "by_type": dict(self.by_type),
                "by_tier": dict(self.by_tier),
                "by_condition": dict(self.by_condition),
                "generation": {k: dict(v) for k, v in self.generation.items()},
                "verification": {k: dict(v) for k, v in self.verification.items()},
            }

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        return generate_latest(self.registry).decode("utf-8")
