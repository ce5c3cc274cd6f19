"""
Attempt and Rate Counters
=========================
Failed-verification counters and a sliding window generation limiter.
"""

import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Tuple
import structlog

from pairing_core.models import Channel, CredentialKey
from .models import RateLimitInfo

logger = structlog.get_logger(__name__)


class AttemptCounter:
    """
    Counts failed verification attempts per ``(session_id, channel)``.

    The count is capped at ``max_attempts`` and forgotten ``ttl`` seconds
    after the last failure.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        ttl: int = 600,
        clock: Callable[[], float] = time.time,
    ):
        self.max_attempts = max_attempts
        self.ttl = ttl
        self._clock = clock
        self._counts: Dict[CredentialKey, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def _current(self, key: CredentialKey) -> int:
        entry = self._counts.get(key)
        if entry is None:
            return 0
        count, updated_at = entry
        if self._clock() - updated_at > self.ttl:
            del self._counts[key]
            return 0
        return count

    def record_failure(self, session_id: str, channel: Channel) -> int:
        """
        Record a failed attempt.

        Returns:
            Attempts remaining, never below zero
        """
        key = (session_id, channel)
        with self._lock:
            count = min(self._current(key) + 1, self.max_attempts)
            self._counts[key] = (count, self._clock())
        return max(0, self.max_attempts - count)

    def failures(self, session_id: str, channel: Channel) -> int:
        with self._lock:
            return self._current((session_id, channel))

    def remaining(self, session_id: str, channel: Channel) -> int:
        return max(0, self.max_attempts - self.failures(session_id, channel))

    def reset(self, session_id: str, channel: Channel) -> None:
        with self._lock:
            self._counts.pop((session_id, channel), None)

    def purge_expired(self) -> int:
        """Drop counters idle for longer than ``ttl``."""
        now = self._clock()
        with self._lock:
            stale = [k for k, (_, updated_at) in self._counts.items() if now - updated_at > self.ttl]
            for key in stale:
                del self._counts[key]
        return len(stale)


class RateCounter:
    """
    Sliding window limiter for code generation per ``(phone, channel)``.

    More accurate than a fixed window: each generation timestamp ages out
    individually.
    """

    def __init__(
        self,
        rate: int = 5,
        window: int = 300,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            rate: Generations allowed per window
            window: Window size in seconds
        """
        self.rate = rate
        self.window = window
        self._clock = clock
        self._events: Dict[Tuple[str, Channel], Deque[float]] = {}
        self._lock = threading.Lock()

    def check(self, phone: str, channel: Channel) -> RateLimitInfo:
        """
        Check and, when allowed, record a generation attempt.

        Args:
            phone: Phone number requesting a code
            channel: Channel the code is requested on

        Returns:
            RateLimitInfo with decision and quota
        """
        key = (phone, channel)
        now = self._clock()
        window_start = now - self.window

        with self._lock:
            events = self._events.setdefault(key, deque())
            while events and events[0] <= window_start:
                events.popleft()

            if len(events) >= self.rate:
                retry_after = max(1, math.ceil(events[0] + self.window - now))
                logger.warning(
                    "generation_rate_limited",
                    channel=channel.value,
                    retry_after=retry_after,
                )
                return RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=self.rate,
                    reset_at=int(events[0] + self.window),
                    retry_after=retry_after,
                )

            events.append(now)
            return RateLimitInfo(
                allowed=True,
                remaining=self.rate - len(events),
                limit=self.rate,
                reset_at=int(events[0] + self.window),
            )

    def reset(self, phone: str, channel: Channel) -> None:
        """Forget all generation attempts for a phone and channel."""
        with self._lock:
            self._events.pop((phone, channel), None)

    def purge_expired(self) -> int:
        """Drop keys whose every event has left the window."""
        window_start = self._clock() - self.window
        with self._lock:
            stale = [k for k, events in self._events.items() if not events or events[-1] <= window_start]
            for key in stale:
                del self._events[key]
        return len(stale)
