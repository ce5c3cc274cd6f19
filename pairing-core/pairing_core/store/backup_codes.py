"""
Backup Code Store
=================
Permanent backup credentials kept apart from the TTL credential cache.
"""

import threading
from typing import Dict, Optional
import structlog

from pairing_core.models import Credential

logger = structlog.get_logger(__name__)


class BackupCodeStore:
    """
    Holds at most one backup credential per session.

    In production, back this with the session directory's database.
    """

    def __init__(self):
        self._codes: Dict[str, Credential] = {}
        self._lock = threading.Lock()

    def save(self, credential: Credential) -> None:
        with self._lock:
            self._codes[credential.session_id] = credential
        logger.info("backup_code_stored", session_id=credential.session_id)

    def get(self, session_id: str) -> Optional[Credential]:
        with self._lock:
            return self._codes.get(session_id)

    def consume(self, session_id: str) -> Optional[Credential]:
        """Remove and return the backup credential for a session."""
        with self._lock:
            return self._codes.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)
