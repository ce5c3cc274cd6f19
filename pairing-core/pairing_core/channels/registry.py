"""
Channel Registry
================
Enabled channel strategies plus the shared stores they write to.
"""

import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import structlog

from pairing_core.exceptions import ChannelUnavailable, PairingError, RateLimited
from pairing_core.models import Channel, Credential
from pairing_core.phone import mask_phone
from pairing_core.stats import PairingMetrics
from pairing_core.store import AttemptCounter, CredentialStore, RateCounter
from .strategies import ChannelStrategy

logger = structlog.get_logger(__name__)


class ChannelRegistry:
    """
    Issues credentials through registered channel strategies.

    Every successful generation overwrites the stored credential for its
    ``(session_id, channel)`` key and resets that key's attempt counter.
    """

    def __init__(
        self,
        strategies: Iterable[ChannelStrategy],
        store: CredentialStore,
        attempts: AttemptCounter,
        rates: RateCounter,
        enabled: Optional[Iterable[Channel]] = None,
        metrics: Optional[PairingMetrics] = None,
        owner_ttl: int = 3600,
        clock: Callable[[], float] = time.time,
    ):
        self._strategies: Dict[Channel, ChannelStrategy] = {s.channel: s for s in strategies}
        self._enabled = set(enabled) if enabled is not None else set(self._strategies)
        self.store = store
        self.attempts = attempts
        self.rates = rates
        self.metrics = metrics or PairingMetrics()
        self.owner_ttl = owner_ttl
        self._clock = clock
        # session_id -> (phone, last generation time)
        self._owners: Dict[str, Tuple[str, float]] = {}

    def is_enabled(self, channel: Channel) -> bool:
        strategy = self._strategies.get(channel)
        return strategy is not None and channel in self._enabled and strategy.spec.enabled

    def strategy(self, channel: Channel) -> ChannelStrategy:
        """
        Look up the strategy for an enabled channel.

        Raises:
            ChannelUnavailable: If the channel is unknown or disabled
        """
        if not self.is_enabled(channel):
            raise ChannelUnavailable(channel.value)
        return self._strategies[channel]

    def enabled_channels(self) -> List[Channel]:
        """Enabled channels ordered by priority."""
        channels = [c for c in self._strategies if self.is_enabled(c)]
        return sorted(channels, key=lambda c: self._strategies[c].spec.priority)

    async def generate(self, phone: str, session_id: str, channel: Channel) -> Credential:
        """
        Generate, deliver and store a credential.

        Raises:
            ChannelUnavailable: Channel disabled or provider missing
            RateLimited: Too many codes for this phone and channel
            DeliveryFailed: Provider error
        """
        strategy = self.strategy(channel)
        if not strategy.is_available:
            self.metrics.record_generation(channel.value, "failed")
            raise ChannelUnavailable(channel.value, strategy.unavailable_reason)

        limit = self.rates.check(phone, channel)
        if not limit.allowed:
            self.metrics.record_generation(channel.value, "rate_limited")
            raise RateLimited(limit.retry_after, limit.reset_at)

        try:
            credential = await strategy.generate(phone, session_id, self._clock())
        except PairingError as e:
            self.metrics.record_generation(channel.value, "failed")
            logger.warning(
                "code_generation_failed",
                session_id=session_id,
                channel=channel.value,
                error=e.code,
            )
            raise

        self.store.put(credential)
        self.attempts.reset(session_id, channel)
        self._owners[session_id] = (phone, self._clock())
        self.metrics.record_generation(channel.value, "success")

        logger.info(
            "code_generated",
            session_id=session_id,
            channel=channel.value,
            phone=mask_phone(phone),
            expires_in=strategy.spec.timeout,
            quota_remaining=limit.remaining,
        )
        return credential

    def alternatives(self, channel: Channel) -> List[Channel]:
        """Enabled channels ranked after ``channel``."""
        priority = self._strategies[channel].spec.priority if channel in self._strategies else 0
        return [
            c for c in self.enabled_channels()
            if c != channel and self._strategies[c].spec.priority > priority
        ]

    def next_channel(self, failed: Channel, exclude: Iterable[Channel] = ()) -> Optional[Channel]:
        """
        Next channel after ``failed`` in cyclic priority order.

        Skips the failed channel and anything in ``exclude``.
        """
        order = self.enabled_channels()
        skipped = set(exclude) | {failed}
        if failed in order:
            start = order.index(failed) + 1
            order = order[start:] + order[:start]
        for channel in order:
            if channel not in skipped:
                return channel
        return None

    def owner_of(self, session_id: str) -> Optional[str]:
        """Phone that last requested a code for the session."""
        entry = self._owners.get(session_id)
        return entry[0] if entry else None

    def purge_owners(self) -> int:
        """
        Forget session owners idle longer than ``owner_ttl`` whose session
        holds no live credential. Returns the number removed.
        """
        cutoff = self._clock() - self.owner_ttl
        live = self.store.sessions()
        stale = [
            session_id for session_id, (_, seen) in list(self._owners.items())
            if seen <= cutoff and session_id not in live
        ]
        for session_id in stale:
            self._owners.pop(session_id, None)
        return len(stale)

    def reset_rate_limit(self, phone: str, channel: Channel) -> None:
        self.rates.reset(phone, channel)
        logger.info("rate_limit_reset", phone=mask_phone(phone), channel=channel.value)

    def describe(self) -> List[Dict[str, Any]]:
        """Catalog entries for enabled channels, by priority."""
        return [self._strategies[c].spec.to_dict() for c in self.enabled_channels()]

    def recommendations(self) -> Dict[str, Any]:
        methods = self.describe()
        by_id = {m["id"]: m for m in methods}
        return {
            "primary": methods[0] if methods else None,
            "fallbacks": methods[1:],
            "best_for": {
                "speed": by_id.get(Channel.PRIMARY.value),
                "reliability": by_id.get(Channel.SMS.value),
                "security": by_id.get(Channel.EMAIL.value),
            },
        }
