"""
Tests for pairing statistics
============================
"""

import pytest


class TestPairingMetrics:
    """Tests for in-memory counters and Prometheus export."""

    def test_empty_snapshot(self):
        """Should start at zero without dividing by zero."""
        from pairing_core.stats import PairingMetrics

        snapshot = PairingMetrics().snapshot()

        assert snapshot["total_fallbacks"] == 0
        assert snapshot["success_rate"] == 0.0
        assert snapshot["average_response_ms"] == 0.0

    def test_record_fallbacks(self):
        """Should count outcomes, tiers, actions and conditions."""
        from pairing_core.stats import PairingMetrics

        metrics = PairingMetrics()
        metrics.record_fallback("automatic", "rotate_method", True, 0.010, ["code_failed"])
        metrics.record_fallback("automatic", "rotate_method", True, 0.020, ["sms_failed"])
        metrics.record_fallback("emergency", "escalation", False, 0.030, ["all_failed"])

        snapshot = metrics.snapshot()
        assert snapshot["total_fallbacks"] == 3
        assert snapshot["successful_fallbacks"] == 2
        assert snapshot["failed_fallbacks"] == 1
        assert snapshot["success_rate"] == 66.67
        assert snapshot["average_response_ms"] == 20.0
        assert snapshot["by_type"] == {"rotate_method": 2, "escalation": 1}
        assert snapshot["by_tier"] == {"automatic": 2, "emergency": 1}
        assert snapshot["by_condition"]["all_failed"] == 1

    def test_rolling_window(self):
        """Should average only the most recent samples."""
        from pairing_core.stats import PairingMetrics

        metrics = PairingMetrics(sample_size=2)
        metrics.record_fallback("automatic", "rotate_method", True, 1.0)
        metrics.record_fallback("automatic", "rotate_method", True, 0.002)
        metrics.record_fallback("automatic", "rotate_method", True, 0.004)

        assert metrics.average_response_ms == pytest.approx(3.0)
        assert metrics.total_fallbacks == 3

    def test_snapshot_is_a_copy(self):
        """Should not expose internal state."""
        from pairing_core.stats import PairingMetrics

        metrics = PairingMetrics()
        metrics.record_generation("sms", "success")
        snapshot = metrics.snapshot()
        snapshot["generation"]["sms"]["success"] = 99

        assert metrics.snapshot()["generation"]["sms"]["success"] == 1

    def test_export_prometheus(self):
        """Should expose counters in text format."""
        from pairing_core.stats import PairingMetrics

        metrics = PairingMetrics()
        metrics.record_generation("primary", "success")
        metrics.record_verification("primary", "mismatch")
        metrics.record_fallback("automatic", "rotate_method", True, 0.01)

        text = metrics.export_prometheus()

        assert 'pairing_codes_generated_total{channel="primary",outcome="success"} 1.0' in text
        assert 'pairing_verifications_total{channel="primary",outcome="mismatch"} 1.0' in text
        assert "pairing_fallback_duration_seconds_count 1.0" in text

    def test_instances_do_not_share_registries(self):
        """Should allow several instances in one process."""
        from pairing_core.stats import PairingMetrics

        first = PairingMetrics()
        second = PairingMetrics()
        first.record_generation("sms", "success")

        assert "pairing_codes_generated_total{" not in second.export_prometheus()
