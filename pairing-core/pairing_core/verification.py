"""
Verification Engine
===================
Checks submitted codes against stored credentials with attempt limits.
"""

from dataclasses import dataclass
from typing import Optional
import structlog

from pairing_core.channels.codes import codes_match
from pairing_core.exceptions import CredentialExpired
from pairing_core.models import Channel, Credential
from pairing_core.stats import PairingMetrics
from pairing_core.store import AttemptCounter, BackupCodeStore, CredentialStore

logger = structlog.get_logger(__name__)


@dataclass
class VerificationOutcome:
    """Result of comparing one submitted code."""
    matched: bool
    remaining_attempts: int
    credential: Credential


class VerificationEngine:
    """
    Single-use credential verification.

    A match consumes the credential. A mismatch only counts against the
    attempt counter; the credential stays usable until it expires.
    """

    def __init__(
        self,
        store: CredentialStore,
        attempts: AttemptCounter,
        backup_codes: Optional[BackupCodeStore] = None,
        metrics: Optional[PairingMetrics] = None,
    ):
        self.store = store
        self.attempts = attempts
        self.backup_codes = backup_codes
        self.metrics = metrics or PairingMetrics()

    def _lookup(self, session_id: str, channel: Channel) -> Optional[Credential]:
        credential = self.store.get(session_id, channel)
        if credential is None and channel == Channel.BACKUP and self.backup_codes is not None:
            credential = self.backup_codes.get(session_id)
        return credential

    def _consume(self, credential: Credential) -> None:
        self.store.delete(credential.session_id, credential.channel)
        if credential.channel == Channel.BACKUP and self.backup_codes is not None:
            self.backup_codes.consume(credential.session_id)

    def verify(self, session_id: str, channel: Channel, code: str) -> VerificationOutcome:
        """
        Verify a submitted code.

        The session's backup code is accepted in place of the channel
        code and does not count as a failed attempt.

        Args:
            session_id: Session the code was issued for
            channel: Channel the code was issued on
            code: User-provided code, formatting characters allowed

        Returns:
            VerificationOutcome with match flag and attempts remaining

        Raises:
            CredentialExpired: If no live credential exists
        """
        credential = self._lookup(session_id, channel)
        if credential is None:
            self.metrics.record_verification(channel.value, "expired")
            logger.warning("verification_without_credential", session_id=session_id, channel=channel.value)
            raise CredentialExpired("Pairing code has expired")

        if codes_match(code, credential.code):
            self._consume(credential)
            self.metrics.record_verification(channel.value, "success")
            logger.info("code_verified", session_id=session_id, channel=channel.value)
            return VerificationOutcome(
                matched=True,
                remaining_attempts=self.attempts.remaining(session_id, channel),
                credential=credential,
            )

        # A backup code is not a wrong guess on the channel.
        if channel != Channel.BACKUP:
            backup = self.verify_backup(session_id, code)
            if backup is not None:
                return VerificationOutcome(
                    matched=True,
                    remaining_attempts=self.attempts.remaining(session_id, channel),
                    credential=backup,
                )

        remaining = self.attempts.record_failure(session_id, channel)
        self.metrics.record_verification(channel.value, "mismatch")
        logger.warning(
            "invalid_code_attempt",
            session_id=session_id,
            channel=channel.value,
            remaining=remaining,
        )
        return VerificationOutcome(matched=False, remaining_attempts=remaining, credential=credential)

    def verify_backup(self, session_id: str, code: str) -> Optional[Credential]:
        """
        Accept the session's backup code in place of a channel code.

        Returns:
            The consumed backup credential, or None if it does not match
        """
        if self.backup_codes is None:
            return None
        credential = self.backup_codes.get(session_id)
        if credential is None or not codes_match(code, credential.code):
            return None

        self._consume(credential)
        self.metrics.record_verification(Channel.BACKUP.value, "success")
        logger.info("backup_code_accepted", session_id=session_id)
        return credential
