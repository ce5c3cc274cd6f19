"""
Credential Store
================
Time-bounded in-memory store of issued pairing credentials.
"""

import threading
import time
from typing import Callable, Dict, Optional, Set
import structlog

from pairing_core.models import Channel, Credential, CredentialKey

logger = structlog.get_logger(__name__)


class CredentialStore:
    """
    In-memory credential cache keyed by ``(session_id, channel)``.

    Expiry is checked on read; ``purge_expired`` reclaims memory and can
    be driven by a periodic reaper.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._credentials: Dict[CredentialKey, Credential] = {}
        self._lock = threading.Lock()

    def put(self, credential: Credential) -> None:
        """Store a credential, replacing any live one for the same key."""
        with self._lock:
            replaced = credential.key in self._credentials
            self._credentials[credential.key] = credential

        if replaced:
            logger.debug(
                "credential_replaced",
                session_id=credential.session_id,
                channel=credential.channel.value,
            )

    def get(self, session_id: str, channel: Channel) -> Optional[Credential]:
        """Return the live credential for a key, dropping it if expired."""
        key = (session_id, channel)
        with self._lock:
            credential = self._credentials.get(key)
            if credential is None:
                return None
            if credential.is_expired(self._clock()):
                del self._credentials[key]
                logger.info(
                    "credential_expired",
                    session_id=session_id,
                    channel=channel.value,
                )
                return None
            return credential

    def delete(self, session_id: str, channel: Channel) -> bool:
        with self._lock:
            return self._credentials.pop((session_id, channel), None) is not None

    def sessions(self) -> Set[str]:
        """Session ids holding at least one unexpired credential."""
        now = self._clock()
        with self._lock:
            return {
                credential.session_id for credential in self._credentials.values()
                if not credential.is_expired(now)
            }

    def purge_expired(self) -> int:
        """Remove expired credentials. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [
                key for key, credential in self._credentials.items()
                if credential.is_expired(now)
            ]
            for key in expired:
                del self._credentials[key]

        if expired:
            logger.info("credentials_purged", count=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._credentials.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._credentials)
