"""
Core Models
===========
Shared data models for pairing channels and issued credentials.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple
import time


class Channel(str, Enum):
    """Verification channels a pairing code can be issued through."""
    PRIMARY = "primary"
    SMS = "sms"
    CALL = "call"
    EMAIL = "email"
    BACKUP = "backup"


CredentialKey = Tuple[str, Channel]


@dataclass
class Credential:
    """One outstanding verification secret for a session and channel."""
    session_id: str
    channel: Channel
    code: str
    owner_phone: str
    issued_at: float = field(default_factory=time.time)
    expires_at: Optional[float] = None  # None = never expires
    permanent: bool = False

    @property
    def key(self) -> CredentialKey:
        return (self.session_id, self.channel)

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current >= self.expires_at

    def expires_in(self, now: Optional[float] = None) -> int:
        """Seconds until expiry, 0 for permanent credentials."""
        if self.expires_at is None:
            return 0
        current = time.time() if now is None else now
        return max(0, int(self.expires_at - current))
