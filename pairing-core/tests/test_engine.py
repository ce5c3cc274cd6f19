"""
End-to-end tests for the pairing engine
=======================================
"""

import re

import pytest

PHONE = "+15551234567"
SESSION = "WA_TEST1"


def _sms_code(sms_provider, index=-1):
    _, body = sms_provider.messages[index]
    return re.search(r"code is: (\d{6})", body).group(1)


def _wrong(code):
    return str((int(code) + 1) % 10 ** len(code)).zfill(len(code))


class TestRequestCode:
    """Tests for code issuance with automatic fallback."""

    @pytest.mark.asyncio
    async def test_primary_code_issued(self, engine):
        """Should return a displayable 8-digit code with instructions."""
        from pairing_core.models import Channel

        result = await engine.request_code(PHONE, SESSION, Channel.PRIMARY)

        assert result.success is True
        assert result.channel == Channel.PRIMARY
        assert re.fullmatch(r"\d{4}-\d{4}", result.code)
        assert result.expires_in == 600
        assert result.fallback is False
        assert result.instructions
        assert result.alternatives == ["sms", "call", "email", "backup"]

    @pytest.mark.asyncio
    async def test_sent_codes_not_returned(self, engine, sms_provider):
        """Should not echo codes that were delivered out of band."""
        from pairing_core.models import Channel

        result = await engine.request_code(PHONE, SESSION, Channel.SMS)

        assert result.success is True
        assert result.code is None
        assert len(sms_provider.messages) == 1

    @pytest.mark.asyncio
    async def test_invalid_phone(self, engine):
        """Should reject malformed phone numbers."""
        result = await engine.request_code("not-a-phone", SESSION)

        assert result.success is False
        assert result.error == "INVALID_PHONE"
        assert len(engine.store) == 0

    @pytest.mark.asyncio
    async def test_unavailable_primary_falls_back_to_sms(self, config, clock, sms_provider):
        """Should transparently switch to SMS when primary is unavailable."""
        from pairing_core.factory import build_engine
        from pairing_core.models import Channel

        config.enabled_channels = [Channel.SMS, Channel.CALL, Channel.BACKUP]
        engine = build_engine(config, sms_provider=sms_provider, clock=clock)

        result = await engine.request_code(PHONE, SESSION, Channel.PRIMARY)

        assert result.success is True
        assert result.channel == Channel.SMS
        assert result.fallback is True
        assert result.original_method == "primary"
        assert result.to_dict()["original_method"] == "primary"
        assert len(sms_provider.messages) == 1

    @pytest.mark.asyncio
    async def test_delivery_failure_rotates(self, config, clock, voice_provider):
        """Should rotate to the next channel when SMS delivery fails."""
        from pairing_core.factory import build_engine
        from pairing_core.models import Channel
        from pairing_core.providers import RecordingSMSProvider

        engine = build_engine(
            config,
            sms_provider=RecordingSMSProvider(fail_with="carrier down"),
            voice_provider=voice_provider,
            clock=clock,
        )

        result = await engine.request_code(PHONE, SESSION, Channel.SMS)

        assert result.success is True
        assert result.channel == Channel.CALL
        assert result.original_method == "sms"
        assert len(voice_provider.calls) == 1

    @pytest.mark.asyncio
    async def test_all_methods_failed(self, config, clock):
        """Should end with ALL_METHODS_FAILED once every channel failed."""
        from pairing_core.factory import build_engine
        from pairing_core.models import Channel
        from pairing_core.providers import RecordingSMSProvider, RecordingVoiceProvider

        config.enabled_channels = [Channel.SMS, Channel.CALL]
        engine = build_engine(
            config,
            sms_provider=RecordingSMSProvider(fail_with="carrier down"),
            voice_provider=RecordingVoiceProvider(fail_with="no answer"),
            clock=clock,
        )

        result = await engine.request_code(PHONE, SESSION, Channel.SMS)

        assert result.success is False
        assert result.error == "ALL_METHODS_FAILED"
        assert result.details["tried_fallbacks"] == ["sms", "call"]
        assert result.original_method == "sms"
        assert len(engine.store) == 0

    @pytest.mark.asyncio
    async def test_rate_limited_channel_falls_back(self, engine, sms_provider):
        """Should move to the next channel after the rate limit is hit."""
        from pairing_core.models import Channel

        for _ in range(5):
            assert (await engine.request_code(PHONE, SESSION)).channel == Channel.PRIMARY

        result = await engine.request_code(PHONE, SESSION)

        assert result.success is True
        assert result.channel == Channel.SMS
        assert result.fallback is True
        assert result.fallback_details["action"] == "rotate_method"

    @pytest.mark.asyncio
    async def test_rate_limited_backup_rotates(self, engine):
        """Should rotate to another channel when backup generation is rate limited."""
        from pairing_core.models import Channel

        for _ in range(5):
            assert (await engine.request_code(PHONE, SESSION, Channel.BACKUP)).channel == Channel.BACKUP

        result = await engine.request_code(PHONE, SESSION, Channel.BACKUP)

        assert result.success is True
        assert result.channel == Channel.PRIMARY
        assert result.original_method == "backup"
        assert result.fallback_details["action"] == "rotate_method"
        assert engine.get_statistics()["total_fallbacks"] == 1

    @pytest.mark.asyncio
    async def test_disabled_backup_rotates(self, config, clock, sms_provider):
        """Should rotate away from a disabled backup channel."""
        from pairing_core.factory import build_engine
        from pairing_core.models import Channel

        config.enabled_channels = [Channel.PRIMARY, Channel.SMS]
        engine = build_engine(config, sms_provider=sms_provider, clock=clock)

        result = await engine.request_code(PHONE, SESSION, Channel.BACKUP)

        assert result.success is True
        assert result.channel == Channel.PRIMARY
        assert result.fallback is True
        assert result.original_method == "backup"

    @pytest.mark.asyncio
    async def test_repeat_failure_on_tried_channel_ends_chain(self, engine):
        """Should stop once a fallback fails again on an already tried channel."""
        from pairing_core.fallback import DEFAULT_CATALOG, FallbackSelector
        from pairing_core.models import Channel

        engine.executor.selector = FallbackSelector(
            catalog=[d for d in DEFAULT_CATALOG if d.id != "method_rotation"],
        )
        for _ in range(5):
            await engine.request_code(PHONE, SESSION, Channel.BACKUP)

        result = await engine.request_code(PHONE, SESSION, Channel.BACKUP)

        assert result.success is False
        assert result.error == "ALL_METHODS_FAILED"
        assert result.details["tried_fallbacks"] == ["backup"]
        assert result.fallback_details["action"] == "use_backup"
        assert engine.get_statistics()["total_fallbacks"] == 1

    @pytest.mark.asyncio
    async def test_reset_rate_limit(self, engine):
        """Should allow the channel again after a reset."""
        from pairing_core.models import Channel

        for _ in range(5):
            await engine.request_code(PHONE, SESSION)
        engine.reset_rate_limit(PHONE, Channel.PRIMARY)

        result = await engine.request_code(PHONE, SESSION)

        assert result.channel == Channel.PRIMARY
        assert result.fallback is False


class TestSubmitCode:
    """Tests for code verification through the engine."""

    @pytest.mark.asyncio
    async def test_verify_once(self, engine):
        """Should verify once, then report the code as expired."""
        from pairing_core.models import Channel

        issued = await engine.request_code(PHONE, SESSION, Channel.PRIMARY)

        first = await engine.submit_code(SESSION, Channel.PRIMARY, issued.code)
        second = await engine.submit_code(SESSION, Channel.PRIMARY, issued.code)

        assert first.success is True
        assert first.verified_with == Channel.PRIMARY
        assert second.success is False
        assert second.error == "CODE_EXPIRED"
        assert second.fallback is None

    @pytest.mark.asyncio
    async def test_wrong_codes_then_correct(self, engine, sms_provider):
        """Should count down 2, 1, 0 and still accept the correct code."""
        from pairing_core.models import Channel

        await engine.request_code(PHONE, SESSION, Channel.SMS)
        code = _sms_code(sms_provider)

        remaining = []
        for _ in range(3):
            result = await engine.submit_code(SESSION, Channel.SMS, _wrong(code))
            assert result.error == "INVALID_CODE"
            remaining.append(result.remaining_attempts)

        final = await engine.submit_code(SESSION, Channel.SMS, code)

        assert remaining == [2, 1, 0]
        assert final.success is True

    @pytest.mark.asyncio
    async def test_fourth_mismatch_does_not_underflow(self, engine, sms_provider):
        """Should keep remaining attempts at zero."""
        from pairing_core.models import Channel

        await engine.request_code(PHONE, SESSION, Channel.SMS)
        wrong = _wrong(_sms_code(sms_provider))

        results = [await engine.submit_code(SESSION, Channel.SMS, wrong) for _ in range(4)]

        assert [r.remaining_attempts for r in results] == [2, 1, 0, 0]
        assert results[-1].to_dict()["attempts_left"] == 0

    @pytest.mark.asyncio
    async def test_repeated_mismatches_trigger_fallback(self, engine, sms_provider, voice_provider):
        """Should rotate to another channel after the mismatch threshold."""
        from pairing_core.models import Channel

        await engine.request_code(PHONE, SESSION, Channel.SMS)
        wrong = _wrong(_sms_code(sms_provider))

        first = await engine.submit_code(SESSION, Channel.SMS, wrong)
        await engine.submit_code(SESSION, Channel.SMS, wrong)
        third = await engine.submit_code(SESSION, Channel.SMS, wrong)

        assert first.fallback is None
        assert third.fallback["action"] == "rotate_method"
        assert third.fallback["method"] == "call"
        assert len(voice_provider.calls) == 1

    @pytest.mark.asyncio
    async def test_fallback_can_be_suppressed(self, engine, sms_provider, voice_provider):
        """Should skip fallback when the caller opts out."""
        from pairing_core.models import Channel

        await engine.request_code(PHONE, SESSION, Channel.SMS)
        wrong = _wrong(_sms_code(sms_provider))

        for _ in range(3):
            result = await engine.submit_code(SESSION, Channel.SMS, wrong, fallback=False)

        assert result.fallback is None
        assert voice_provider.calls == []

    @pytest.mark.asyncio
    async def test_expired_code_regenerated_on_request(self, engine, clock):
        """Should regenerate on the same channel when asked after expiry."""
        from pairing_core.models import Channel

        issued = await engine.request_code(PHONE, SESSION, Channel.PRIMARY)
        clock.advance(601)

        result = await engine.submit_code(SESSION, Channel.PRIMARY, issued.code, fallback=True)

        assert result.error == "CODE_EXPIRED"
        assert result.fallback["action"] == "regenerate_code"
        assert re.fullmatch(r"\d{4}-\d{4}", result.fallback["code"])
        assert engine.store.get(SESSION, Channel.PRIMARY) is not None

    @pytest.mark.asyncio
    async def test_backup_code_accepted_on_any_channel(self, engine):
        """Should accept the session's backup code in place of a channel code."""
        from pairing_core.models import Channel

        backup = await engine.request_code(PHONE, SESSION, Channel.BACKUP)
        await engine.request_code(PHONE, SESSION, Channel.PRIMARY)

        result = await engine.submit_code(SESSION, Channel.PRIMARY, backup.code)

        assert backup.expires_in == 0
        assert result.success is True
        assert result.verified_with == Channel.BACKUP
        assert engine.backup_codes.get(SESSION) is None
        assert engine.registry.attempts.failures(SESSION, Channel.PRIMARY) == 0
        assert "mismatch" not in engine.get_statistics()["verification"].get("primary", {})

    @pytest.mark.asyncio
    async def test_backup_code_accepted_after_expiry(self, engine, clock):
        """Should accept the backup code when the channel code has expired."""
        from pairing_core.models import Channel

        backup = await engine.request_code(PHONE, SESSION, Channel.BACKUP)
        await engine.request_code(PHONE, SESSION, Channel.PRIMARY)
        clock.advance(3600)

        result = await engine.submit_code(SESSION, Channel.PRIMARY, backup.code)

        assert result.success is True
        assert result.verified_with == Channel.BACKUP


class TestCriticalEscalation:
    """Tests for escalation when no strategy applies."""

    @pytest.mark.asyncio
    async def test_critical_failure_gets_new_session(self, engine, session_service):
        """Should escalate a critical failure with no matching strategy."""
        from pairing_core.fallback import (
            DEFAULT_CATALOG,
            FailureContext,
            FallbackRequest,
            FallbackSelector,
            Tier,
            classify,
        )
        from pairing_core.models import Channel

        engine.executor.selector = FallbackSelector(
            catalog=[d for d in DEFAULT_CATALOG if d.tier is not Tier.EMERGENCY],
            capability_check=lambda descriptor, session_id: False,
        )
        analysis = classify("Pairing keeps failing persistently", FailureContext(attempts=5))
        request = FallbackRequest(SESSION, PHONE, Channel.PRIMARY, "Pairing keeps failing persistently")

        result = await engine.executor.handle(request, analysis)

        assert analysis.severity.label == "critical"
        assert result.escalated is True
        assert result.success is True
        assert result.payload["new_session_id"] in session_service.created


class TestConnect:
    """Tests for handing verified credentials to the protocol client."""

    @pytest.mark.asyncio
    async def test_connect_with_verified_credential(self, config, clock):
        """Should pass the verified credential to the protocol client."""
        from pairing_core.collaborators import ProtocolClient
        from pairing_core.factory import build_engine
        from pairing_core.models import Channel

        class FakeProtocolClient(ProtocolClient):
            def __init__(self):
                self.connections = []

            async def connect(self, session_id, phone, credential):
                self.connections.append((session_id, phone, credential.channel))
                return {"connected": True}

        client = FakeProtocolClient()
        engine = build_engine(config, protocol_client=client, clock=clock)
        issued = await engine.request_code(PHONE, SESSION)
        verification = await engine.submit_code(SESSION, Channel.PRIMARY, issued.code)

        handle = await engine.connect(SESSION, PHONE, verification)

        assert handle == {"connected": True}
        assert client.connections == [(SESSION, PHONE, Channel.PRIMARY)]

    @pytest.mark.asyncio
    async def test_connect_refuses_unverified(self, engine):
        """Should refuse failed verifications."""
        from pairing_core.models import Channel

        verification = await engine.submit_code(SESSION, Channel.PRIMARY, "12345678")

        with pytest.raises(ValueError):
            await engine.connect(SESSION, PHONE, verification)

    @pytest.mark.asyncio
    async def test_connect_without_client(self, engine):
        """Should raise when no protocol client is configured."""
        from pairing_core.models import Channel

        issued = await engine.request_code(PHONE, SESSION)
        verification = await engine.submit_code(SESSION, Channel.PRIMARY, issued.code)

        with pytest.raises(RuntimeError):
            await engine.connect(SESSION, PHONE, verification)


class TestQueries:
    """Tests for read-only engine queries and maintenance."""

    def test_available_channels(self, engine):
        """Should list enabled channels by priority."""
        channels = engine.get_available_channels()

        assert [c["id"] for c in channels] == ["primary", "sms", "call", "email", "backup"]
        assert channels[3]["requirements"] == ["email"]

    def test_available_fallbacks(self, engine):
        """Should group fallback strategies by tier."""
        fallbacks = engine.get_available_fallbacks()

        assert set(fallbacks) == {"automatic", "manual", "emergency"}
        assert fallbacks["automatic"][0]["id"] == "method_rotation"

    def test_recommendations(self, engine):
        """Should expose recommendations from the registry."""
        assert engine.get_recommendations()["best_for"]["security"]["id"] == "email"

    @pytest.mark.asyncio
    async def test_status(self, engine):
        """Should summarize channels, credentials and generation stats."""
        await engine.request_code(PHONE, SESSION)

        status = engine.get_status()

        assert status["active_credentials"] == 1
        assert status["generation"]["primary"]["success"] == 1
        assert "sms" in status["enabled_channels"]
        assert status["fallbacks"]["total"] == 0

    @pytest.mark.asyncio
    async def test_reap(self, engine, clock):
        """Should reclaim expired credentials."""
        from pairing_core.models import Channel

        await engine.request_code(PHONE, SESSION, Channel.SMS)
        await engine.request_code(PHONE, SESSION, Channel.PRIMARY)
        clock.advance(301)

        reaped = engine.reap()

        assert reaped["credentials"] == 1
        assert len(engine.store) == 1

    @pytest.mark.asyncio
    async def test_reap_forgets_idle_owners(self, engine, clock):
        """Should drop owners of idle sessions with no live credential."""
        from pairing_core.models import Channel

        for i in range(10):
            await engine.request_code(f"+1555000010{i}", f"WA_S{i}", Channel.SMS)
        await engine.request_code(PHONE, "WA_KEEP", Channel.BACKUP)
        assert engine.registry.owner_of("WA_S0") == "+15550000100"

        clock.advance(3601)
        reaped = engine.reap()

        assert reaped["owners"] == 10
        assert engine.registry.owner_of("WA_S0") is None
        assert engine.registry.owner_of("WA_KEEP") == PHONE

    @pytest.mark.asyncio
    async def test_close(self, engine):
        """Should close providers without error."""
        await engine.close()
