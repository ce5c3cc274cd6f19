"""
Fallback Executor
=================
Runs the recovery action behind a selected fallback strategy, and the
critical escalation path when recovery fails at critical severity.
"""

import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Mapping, Optional
import structlog

from pairing_core.channels.registry import ChannelRegistry
from pairing_core.collaborators import AlternativeAuth, SessionService, SupportDesk
from pairing_core.exceptions import CriticalFailure, NoFallbackAvailable, PairingError
from pairing_core.models import Channel
from pairing_core.stats import PairingMetrics
from .models import (
    ActionResult,
    FailureAnalysis,
    FallbackAction,
    FallbackDescriptor,
    FallbackRequest,
    FallbackResult,
    Severity,
)
from .selector import FallbackSelector

logger = structlog.get_logger(__name__)

ActionHandler = Callable[[FallbackRequest, FailureAnalysis], Awaitable[ActionResult]]

RETRY_DELAYS: Mapping[Severity, int] = {
    Severity.LOW: 60,
    Severity.MEDIUM: 300,
    Severity.HIGH: 900,
    Severity.CRITICAL: 3600,
}

DEVICE_SWITCH_STEPS = (
    "Try pairing from a different phone or computer",
    "Make sure the app is updated to the latest version",
    "Restart the device and try again",
)

DEFAULT_SUPPORT_CONTACT: Mapping[str, str] = {"email": "support@localhost"}


class FallbackExecutor:
    """
    Dispatches fallback actions and escalates critical failures.

    Collaborators are optional; an action whose collaborator is missing
    reports failure instead of raising.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        selector: Optional[FallbackSelector] = None,
        support_desk: Optional[SupportDesk] = None,
        session_service: Optional[SessionService] = None,
        alternative_auth: Optional[AlternativeAuth] = None,
        metrics: Optional[PairingMetrics] = None,
        support_contact: Optional[Mapping[str, str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.registry = registry
        self.selector = selector or FallbackSelector()
        self.support_desk = support_desk
        self.session_service = session_service
        self.alternative_auth = alternative_auth
        self.metrics = metrics or registry.metrics
        self.support_contact = dict(support_contact or DEFAULT_SUPPORT_CONTACT)
        self._clock = clock
        self._actions: Dict[FallbackAction, ActionHandler] = {
            FallbackAction.ROTATE_CHANNEL: self._rotate_channel,
            FallbackAction.REGENERATE_CODE: self._regenerate_code,
            FallbackAction.REFRESH_SESSION: self._refresh_session,
            FallbackAction.USE_BACKUP: self._use_backup,
            FallbackAction.ALTERNATIVE_AUTH: self._alternative_auth,
            FallbackAction.CONTACT_SUPPORT: self._contact_support,
            FallbackAction.CREATE_NEW_SESSION: self._create_new_session,
            FallbackAction.SWITCH_DEVICE: self._switch_device,
            FallbackAction.DELAYED_RETRY: self._delayed_retry,
            FallbackAction.RESET_STATE: self._reset_state,
        }

    async def handle(self, request: FallbackRequest, analysis: FailureAnalysis) -> FallbackResult:
        """
        Select and run a fallback for a classified failure.

        Never raises for expected failures; the outcome is in the result.
        """
        started = time.perf_counter()
        descriptor = self.selector.select(analysis, request.session_id)

        logger.info(
            "handling_fallback",
            session_id=request.session_id,
            channel=request.channel.value,
            severity=analysis.severity.label,
            strategy=descriptor.id if descriptor else None,
        )

        if descriptor is None:
            if analysis.severity is Severity.CRITICAL:
                result = await self.escalate(request, analysis)
            else:
                result = FallbackResult(
                    success=False,
                    action="none",
                    message="No fallback strategy matches this failure",
                    severity=analysis.severity,
                    error=NoFallbackAvailable.code,
                )
        else:
            action_result = await self.execute(descriptor, request, analysis)
            if not action_result.success and analysis.severity is Severity.CRITICAL:
                result = await self.escalate(request, analysis)
                result.payload.setdefault("failed_action", action_result.action)
            else:
                result = FallbackResult.from_action(descriptor, action_result, analysis.severity)

        if result.escalated:
            tier = "emergency"
        elif descriptor is not None:
            tier = descriptor.tier.value
        else:
            tier = "none"

        self.metrics.record_fallback(
            tier=tier,
            action=result.action,
            success=result.success,
            duration_seconds=time.perf_counter() - started,
            conditions=analysis.conditions,
        )

        log = logger.info if result.success else logger.warning
        log(
            "fallback_handled",
            session_id=request.session_id,
            action=result.action,
            success=result.success,
            escalated=result.escalated,
        )
        return result

    async def execute(
        self,
        descriptor: FallbackDescriptor,
        request: FallbackRequest,
        analysis: FailureAnalysis,
    ) -> ActionResult:
        """Run the action behind a descriptor."""
        handler = self._actions[descriptor.action]
        return await handler(request, analysis)

    async def escalate(self, request: FallbackRequest, analysis: FailureAnalysis) -> FallbackResult:
        """
        Critical escalation: new session, then support ticket, then a
        state reset. Stops at the first success.
        """
        logger.warning("critical_escalation", session_id=request.session_id)

        steps = (
            self._create_new_session,
            self._contact_support,
            self._reset_state,
        )
        for step in steps:
            outcome = await step(request, analysis)
            if outcome.success:
                return FallbackResult(
                    success=True,
                    action=outcome.action,
                    message=outcome.message,
                    severity=analysis.severity,
                    escalated=True,
                    payload=dict(outcome.payload),
                )

        logger.error("critical_escalation_exhausted", session_id=request.session_id)
        failure = CriticalFailure(self.support_contact)
        return FallbackResult(
            success=False,
            action="escalation",
            message=failure.message,
            severity=analysis.severity,
            escalated=True,
            error=failure.code,
            payload={"support": dict(self.support_contact)},
        )

    # Actions

    async def _generate(self, request: FallbackRequest, channel: Channel, action: FallbackAction,
                        message: str) -> ActionResult:
        try:
            credential = await self.registry.generate(request.phone, request.session_id, channel)
        except PairingError as e:
            return ActionResult(
                success=False,
                action=action.value,
                message=e.message,
                payload={"channel": channel.value, "error": e.code},
            )
        return ActionResult(
            success=True,
            action=action.value,
            message=message,
            payload={"channel": channel.value},
            credential=credential,
        )

    async def _rotate_channel(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        next_channel = self.registry.next_channel(request.channel, exclude=request.tried)
        if next_channel is None:
            return ActionResult(
                success=False,
                action=FallbackAction.ROTATE_CHANNEL.value,
                message="No alternative pairing method available",
                payload={"tried": [c.value for c in request.tried]},
            )
        logger.info("rotating_channel", session_id=request.session_id, to=next_channel.value)
        return await self._generate(
            request, next_channel, FallbackAction.ROTATE_CHANNEL,
            f"Switched to {next_channel.value} pairing",
        )

    async def _regenerate_code(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        return await self._generate(
            request, request.channel, FallbackAction.REGENERATE_CODE,
            "New pairing code generated",
        )

    async def _use_backup(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        result = await self._generate(
            request, Channel.BACKUP, FallbackAction.USE_BACKUP,
            "Backup code generated - keep it somewhere safe",
        )
        if result.success:
            result.payload["permanent"] = True
        return result

    async def _refresh_session(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        action = FallbackAction.REFRESH_SESSION.value
        if self.session_service is None:
            return ActionResult(False, action, "Session service not configured")
        try:
            new_session_id = await self.session_service.refresh_session(request.session_id)
        except Exception as e:
            logger.error("session_refresh_failed", session_id=request.session_id, error=str(e))
            return ActionResult(False, action, "Failed to refresh session")
        return ActionResult(
            True, action, "Session refreshed",
            payload={"new_session_id": new_session_id, "previous_session_id": request.session_id},
        )

    async def _alternative_auth(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        action = FallbackAction.ALTERNATIVE_AUTH.value
        if self.alternative_auth is None:
            return ActionResult(False, action, "Alternative authentication not configured")
        try:
            details = await self.alternative_auth.initiate(request.session_id, request.phone)
        except Exception as e:
            logger.error("alternative_auth_failed", session_id=request.session_id, error=str(e))
            return ActionResult(False, action, "Alternative authentication unavailable")
        return ActionResult(True, action, "Continue with alternative authentication", payload=dict(details))

    async def _contact_support(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        action = FallbackAction.CONTACT_SUPPORT.value
        if self.support_desk is None:
            return ActionResult(False, action, "Support desk not configured")
        try:
            ticket_id = await self.support_desk.open_ticket(
                request.session_id,
                request.phone,
                request.error_message or analysis.error_type.value,
                analysis.severity.label,
            )
        except Exception as e:
            logger.error("support_ticket_failed", session_id=request.session_id, error=str(e))
            return ActionResult(False, action, "Failed to open support ticket")
        return ActionResult(
            True, action, "Support ticket opened",
            payload={
                "ticket_id": ticket_id,
                "support": dict(self.support_contact),
                "next_steps": ["Keep your ticket id", "Support will contact you to finish pairing"],
            },
        )

    async def _create_new_session(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        action = FallbackAction.CREATE_NEW_SESSION.value
        if self.session_service is None:
            return ActionResult(False, action, "Session service not configured")
        try:
            new_session_id = await self.session_service.create_session(request.phone)
        except Exception as e:
            logger.error("session_creation_failed", session_id=request.session_id, error=str(e))
            return ActionResult(False, action, "Failed to create new session")
        return ActionResult(
            True, action, "New session created",
            payload={"new_session_id": new_session_id, "previous_session_id": request.session_id},
        )

    async def _switch_device(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        return ActionResult(
            True,
            FallbackAction.SWITCH_DEVICE.value,
            "Try pairing from a different device",
            payload={"next_steps": list(DEVICE_SWITCH_STEPS)},
        )

    async def _delayed_retry(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        delay = RETRY_DELAYS[analysis.severity]
        retry_at = datetime.fromtimestamp(self._clock() + delay, tz=timezone.utc)
        return ActionResult(
            True,
            FallbackAction.DELAYED_RETRY.value,
            f"Retry in {delay // 60} minutes",
            payload={"retry_after": delay, "retry_at": retry_at.isoformat()},
        )

    async def _reset_state(self, request: FallbackRequest, analysis: FailureAnalysis) -> ActionResult:
        action = FallbackAction.RESET_STATE.value
        if self.session_service is None:
            return ActionResult(False, action, "Session service not configured")
        try:
            reset = await self.session_service.reset_state(request.session_id)
        except Exception as e:
            logger.error("state_reset_failed", session_id=request.session_id, error=str(e))
            return ActionResult(False, action, "Failed to reset session state")
        if not reset:
            return ActionResult(False, action, "Session state could not be reset")
        return ActionResult(True, action, "Session state reset - request a new code")
