"""
Credential Storage
==================
Credential cache, attempt counters and rate counters.
"""

from .models import RateLimitInfo
from .credential_store import CredentialStore
from .counters import AttemptCounter, RateCounter
from .backup_codes import BackupCodeStore

__all__ = [
    # Models
    "RateLimitInfo",
    # Stores
    "CredentialStore",
    "BackupCodeStore",
    # Counters
    "AttemptCounter",
    "RateCounter",
]
