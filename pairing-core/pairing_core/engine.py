"""
Pairing Engine
==============
Entry point combining code generation, verification and fallback
handling into single request/response calls.

Expected failures never raise: they come back as results carrying a
stable error code. Only unexpected faults propagate.

Usage:
    engine = build_engine_from_env()
    result = await engine.request_code("+15551234567", "WA_1A2B3C4D5E6F7A8B")
    if result.success:
        print(result.code, result.instructions)
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional
import structlog

from pairing_core.channels.registry import ChannelRegistry
from pairing_core.collaborators import ProtocolClient
from pairing_core.exceptions import (
    AllMethodsFailed,
    CodeMismatch,
    CredentialExpired,
    InvalidPhone,
    PairingError,
)
from pairing_core.fallback import (
    FailureContext,
    FallbackExecutor,
    FallbackRequest,
    FallbackResult,
    by_tier,
    classify,
)
from pairing_core.models import Channel, Credential
from pairing_core.phone import mask_phone, validate_phone
from pairing_core.providers.base import DeliveryProvider
from pairing_core.store import BackupCodeStore
from pairing_core.verification import VerificationEngine

logger = structlog.get_logger(__name__)

ACTION_REQUIRED = "ACTION_REQUIRED"

# Channels whose code is shown to the user instead of being sent.
DISPLAY_CHANNELS = frozenset({Channel.PRIMARY, Channel.BACKUP})

DELIVERY_MESSAGES: Dict[Channel, str] = {
    Channel.PRIMARY: "Pairing code generated",
    Channel.SMS: "Pairing code sent via SMS",
    Channel.CALL: "You will receive a call with your pairing code",
    Channel.EMAIL: "Pairing code sent to your registered email",
    Channel.BACKUP: "Backup code generated - store it somewhere safe",
}


@dataclass
class PairingResult:
    """Outcome of a code request."""
    success: bool
    session_id: str
    channel: Optional[Channel] = None
    message: str = ""
    code: Optional[str] = None
    expires_in: Optional[int] = None
    instructions: List[str] = field(default_factory=list)
    alternatives: List[str] = field(default_factory=list)
    fallback: bool = False
    original_method: Optional[str] = None
    fallback_details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def failure(cls, session_id: str, error: PairingError, **kwargs: Any) -> "PairingResult":
        return cls(
            success=False,
            session_id=session_id,
            message=error.message,
            error=error.code,
            details=dict(error.details),
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "session_id": self.session_id,
            "method": self.channel.value if self.channel else None,
            "message": self.message,
        }
        if self.success:
            data.update({
                "code": self.code,
                "expires_in": self.expires_in,
                "instructions": list(self.instructions),
                "alternatives": list(self.alternatives),
            })
        if self.fallback:
            data["fallback"] = True
            data["original_method"] = self.original_method
        if self.fallback_details is not None:
            data["fallback_details"] = self.fallback_details
        if self.error:
            data["error"] = self.error
            data.update(self.details)
        return data


@dataclass
class VerificationResult:
    """Outcome of a code submission."""
    success: bool
    session_id: str
    channel: Channel
    message: str = ""
    remaining_attempts: Optional[int] = None
    verified_with: Optional[Channel] = None
    error: Optional[str] = None
    fallback: Optional[Dict[str, Any]] = None
    credential: Optional[Credential] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "session_id": self.session_id,
            "method": self.channel.value,
            "message": self.message,
        }
        if self.verified_with is not None:
            data["verified_with"] = self.verified_with.value
        if self.remaining_attempts is not None:
            data["attempts_left"] = self.remaining_attempts
        if self.error:
            data["error"] = self.error
        if self.fallback is not None:
            data["fallback"] = self.fallback
        return data


class PairingEngine:
    """
    Orchestrates pairing across channels.

    Args:
        registry: Channel registry holding strategies and stores
        verifier: Verification engine sharing the registry's stores
        executor: Fallback executor
        backup_codes: Permanent backup code store
        protocol_client: Messaging connection used by ``connect``
        escalate_after_mismatches: Mismatches on one channel before a
            failed submission triggers fallback handling
        providers: Delivery providers closed by ``close``
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        verifier: VerificationEngine,
        executor: FallbackExecutor,
        backup_codes: Optional[BackupCodeStore] = None,
        protocol_client: Optional[ProtocolClient] = None,
        escalate_after_mismatches: int = 3,
        providers: Iterable[DeliveryProvider] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.verifier = verifier
        self.executor = executor
        self.backup_codes = backup_codes
        self.protocol_client = protocol_client
        self.escalate_after_mismatches = escalate_after_mismatches
        self.providers = list(providers)
        self.metrics = registry.metrics
        self._clock = clock

    @property
    def store(self):
        return self.registry.store

    # =========================================================================
    # Code requests
    # =========================================================================

    async def request_code(
        self,
        phone: str,
        session_id: str,
        preferred_channel: Channel = Channel.PRIMARY,
    ) -> PairingResult:
        """
        Issue a pairing code, falling back to other channels on failure.

        Args:
            phone: Phone number of the account being paired
            session_id: Pairing session identifier
            preferred_channel: Channel to try first

        Returns:
            PairingResult; ``fallback`` is set when a different channel
            or recovery action produced the outcome
        """
        if not validate_phone(phone):
            logger.warning("invalid_phone_rejected", session_id=session_id)
            return PairingResult.failure(session_id, InvalidPhone("Invalid phone number format"))

        logger.info(
            "code_requested",
            session_id=session_id,
            channel=preferred_channel.value,
            phone=mask_phone(phone),
        )

        started = self._clock()
        try:
            credential = await self.registry.generate(phone, session_id, preferred_channel)
        except PairingError as e:
            return await self._recover_generation(phone, session_id, preferred_channel, e, started)

        return self._issued(credential)

    async def _recover_generation(
        self,
        phone: str,
        session_id: str,
        original: Channel,
        error: PairingError,
        started: float,
    ) -> PairingResult:
        tried: List[Channel] = [original]
        channel = original
        message = error.message
        outcome: Optional[FallbackResult] = None

        # Each failed step adds a new channel to ``tried`` or ends the
        # chain, so this is bounded by the number of channels.
        for _ in range(len(Channel) + 1):
            analysis = classify(message, FailureContext(
                attempts=len(tried),
                elapsed_ms=(self._clock() - started) * 1000,
                channel=channel,
            ))
            request = FallbackRequest(
                session_id=session_id,
                phone=phone,
                channel=channel,
                error_message=message,
                tried=tuple(tried),
            )
            outcome = await self.executor.handle(request, analysis)

            if outcome.success and outcome.credential is not None:
                return self._issued(outcome.credential, original=original, outcome=outcome)

            if outcome.success:
                return PairingResult(
                    success=False,
                    session_id=session_id,
                    channel=original,
                    message=outcome.message,
                    fallback=True,
                    original_method=original.value,
                    fallback_details=outcome.to_dict(),
                    error=ACTION_REQUIRED,
                )

            if outcome.escalated or outcome.error:
                return PairingResult(
                    success=False,
                    session_id=session_id,
                    channel=original,
                    message=outcome.message,
                    original_method=original.value,
                    fallback_details=outcome.to_dict(),
                    error=outcome.error,
                    details=dict(outcome.payload),
                )

            failed = outcome.payload.get("channel")
            if failed is None or Channel(failed) in tried:
                break
            channel = Channel(failed)
            tried.append(channel)
            message = outcome.message

        logger.error(
            "all_pairing_methods_failed",
            session_id=session_id,
            original_method=original.value,
            tried=[c.value for c in tried],
        )
        return PairingResult.failure(
            session_id,
            AllMethodsFailed(original.value, [c.value for c in tried]),
            channel=original,
            original_method=original.value,
            fallback_details=outcome.to_dict() if outcome else None,
        )

    def _issued(
        self,
        credential: Credential,
        original: Optional[Channel] = None,
        outcome: Optional[FallbackResult] = None,
    ) -> PairingResult:
        strategy = self.registry.strategy(credential.channel)
        fallback = original is not None
        return PairingResult(
            success=True,
            session_id=credential.session_id,
            channel=credential.channel,
            message=DELIVERY_MESSAGES[credential.channel],
            code=strategy.format(credential.code) if credential.channel in DISPLAY_CHANNELS else None,
            expires_in=credential.expires_in(self._clock()),
            instructions=strategy.instructions(),
            alternatives=[c.value for c in self.registry.alternatives(credential.channel)],
            fallback=fallback,
            original_method=original.value if fallback else None,
            fallback_details=outcome.to_dict() if outcome else None,
        )

    # =========================================================================
    # Code submission
    # =========================================================================

    async def submit_code(
        self,
        session_id: str,
        channel: Channel,
        code: str,
        fallback: Optional[bool] = None,
    ) -> VerificationResult:
        """
        Verify a submitted code.

        The session's backup code is accepted on any channel when the
        channel code does not match.

        Args:
            session_id: Session the code was issued for
            channel: Channel the code was issued on
            code: User-provided code
            fallback: Force (True) or suppress (False) fallback handling
                after a failed submission. By default fallback runs once
                ``escalate_after_mismatches`` mismatches have accumulated,
                and never for expired codes.

        Returns:
            VerificationResult
        """
        try:
            outcome = self.verifier.verify(session_id, channel, code)
        except CredentialExpired as e:
            backup = self.verifier.verify_backup(session_id, code)
            if backup is not None:
                return self._verified(session_id, channel, backup)
            result = VerificationResult(
                success=False,
                session_id=session_id,
                channel=channel,
                message=e.message,
                error=e.code,
            )
            if fallback:
                result.fallback = await self._verification_fallback(session_id, channel, e, None)
            return result

        if outcome.matched:
            return self._verified(session_id, channel, outcome.credential)

        credential = outcome.credential
        mismatch = CodeMismatch(outcome.remaining_attempts)
        result = VerificationResult(
            success=False,
            session_id=session_id,
            channel=channel,
            message=mismatch.message,
            remaining_attempts=outcome.remaining_attempts,
            error=mismatch.code,
        )

        failures = self.registry.attempts.failures(session_id, channel)
        escalate = fallback if fallback is not None else failures >= self.escalate_after_mismatches
        if escalate:
            result.fallback = await self._verification_fallback(session_id, channel, mismatch, credential)
        return result

    def _verified(self, session_id: str, channel: Channel, credential: Credential) -> VerificationResult:
        return VerificationResult(
            success=True,
            session_id=session_id,
            channel=channel,
            message="Pairing verified",
            verified_with=credential.channel,
            credential=credential,
        )

    async def _verification_fallback(
        self,
        session_id: str,
        channel: Channel,
        error: PairingError,
        credential: Optional[Credential],
    ) -> Optional[Dict[str, Any]]:
        phone = self.registry.owner_of(session_id) or (credential.owner_phone if credential else None)
        if phone is None:
            logger.warning("fallback_skipped_unknown_owner", session_id=session_id)
            return None

        analysis = classify(error.message, FailureContext(
            attempts=self.registry.attempts.failures(session_id, channel),
        ))
        request = FallbackRequest(
            session_id=session_id,
            phone=phone,
            channel=channel,
            error_message=error.message,
            tried=(channel,),
        )
        outcome = await self.executor.handle(request, analysis)
        data = outcome.to_dict()
        if outcome.credential is not None:
            issued = self._issued(outcome.credential)
            data.update({
                "method": issued.channel.value,
                "code": issued.code,
                "expires_in": issued.expires_in,
                "instructions": issued.instructions,
            })
        return data

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self, session_id: str, phone: str, verification: VerificationResult) -> Any:
        """
        Open a messaging connection with a verified credential.

        Raises:
            ValueError: If the verification did not succeed
            RuntimeError: If no protocol client is configured
        """
        if not verification.success or verification.credential is None:
            raise ValueError("Cannot connect with an unverified pairing")
        if verification.session_id != session_id:
            raise ValueError("Verification belongs to a different session")
        if self.protocol_client is None:
            raise RuntimeError("Protocol client not configured")

        logger.info("connecting_session", session_id=session_id, phone=mask_phone(phone))
        return await self.protocol_client.connect(session_id, phone, verification.credential)

    # =========================================================================
    # Queries and maintenance
    # =========================================================================

    def get_available_channels(self) -> List[Dict[str, Any]]:
        """Enabled channels with their metadata, by priority."""
        return self.registry.describe()

    def get_recommendations(self) -> Dict[str, Any]:
        return self.registry.recommendations()

    def get_available_fallbacks(self) -> Dict[str, List[Dict[str, Any]]]:
        """Enabled fallback strategies grouped by tier."""
        return {
            tier: [d.to_dict() for d in descriptors]
            for tier, descriptors in by_tier(self.executor.selector.catalog).items()
        }

    def get_statistics(self) -> Dict[str, Any]:
        return self.metrics.snapshot()

    def get_status(self) -> Dict[str, Any]:
        snapshot = self.metrics.snapshot()
        return {
            "enabled_channels": [c.value for c in self.registry.enabled_channels()],
            "active_credentials": len(self.store),
            "backup_codes": len(self.backup_codes) if self.backup_codes is not None else 0,
            "generation": snapshot["generation"],
            "verification": snapshot["verification"],
            "fallbacks": {
                "total": snapshot["total_fallbacks"],
                "success_rate": snapshot["success_rate"],
                "average_response_ms": snapshot["average_response_ms"],
            },
        }

    def reset_rate_limit(self, phone: str, channel: Channel) -> None:
        self.registry.reset_rate_limit(phone, channel)

    def reap(self) -> Dict[str, int]:
        """Reclaim expired credentials, idle counters and session owners."""
        reaped = {
            "credentials": self.store.purge_expired(),
            "attempts": self.registry.attempts.purge_expired(),
            "rates": self.registry.rates.purge_expired(),
            "owners": self.registry.purge_owners(),
        }
        logger.debug("reaped_expired_state", **reaped)
        return reaped

    async def close(self) -> None:
        """Release provider resources."""
        for provider in self.providers:
            await provider.close()
        logger.info("pairing_engine_closed")
