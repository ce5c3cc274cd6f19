"""
Fallback Catalog
================
The default three-tier catalog. Adding a fallback means adding a row.
"""

from typing import Dict, Iterable, List, Tuple

from .models import FallbackAction, FallbackDescriptor, Tier

DEFAULT_CATALOG: Tuple[FallbackDescriptor, ...] = (
    # Automatic
    FallbackDescriptor(
        id="method_rotation",
        name="Method Rotation",
        description="Automatically try different pairing methods",
        tier=Tier.AUTOMATIC,
        priority=1,
        action=FallbackAction.ROTATE_CHANNEL,
        conditions=frozenset({
            "code_failed", "sms_failed", "call_failed", "email_failed", "backup_failed",
        }),
    ),
    FallbackDescriptor(
        id="code_regeneration",
        name="Code Regeneration",
        description="Generate new code if current expires",
        tier=Tier.AUTOMATIC,
        priority=2,
        action=FallbackAction.REGENERATE_CODE,
        conditions=frozenset({"code_expired"}),
    ),
    FallbackDescriptor(
        id="session_refresh",
        name="Session Refresh",
        description="Refresh session if stale",
        tier=Tier.AUTOMATIC,
        priority=3,
        action=FallbackAction.REFRESH_SESSION,
        conditions=frozenset({"session_stale", "connection_timeout"}),
    ),
    # Manual
    FallbackDescriptor(
        id="backup_codes",
        name="Backup Codes",
        description="Use pre-generated backup codes",
        tier=Tier.MANUAL,
        priority=4,
        action=FallbackAction.USE_BACKUP,
        requires=frozenset({"backup_code"}),
    ),
    FallbackDescriptor(
        id="alternative_auth",
        name="Alternative Authentication",
        description="Use email or 2FA instead",
        tier=Tier.MANUAL,
        priority=5,
        action=FallbackAction.ALTERNATIVE_AUTH,
        requires=frozenset({"email_access", "2fa_enabled"}),
    ),
    FallbackDescriptor(
        id="support_intervention",
        name="Support Intervention",
        description="Contact support for manual pairing",
        tier=Tier.MANUAL,
        priority=6,
        action=FallbackAction.CONTACT_SUPPORT,
        requires=frozenset({"support_available"}),
    ),
    # Emergency
    FallbackDescriptor(
        id="new_session",
        name="New Session",
        description="Create completely new session",
        tier=Tier.EMERGENCY,
        priority=7,
        action=FallbackAction.CREATE_NEW_SESSION,
        conditions=frozenset({"all_failed", "persistent_errors"}),
    ),
    FallbackDescriptor(
        id="device_switch",
        name="Device Switch",
        description="Try pairing from different device",
        tier=Tier.EMERGENCY,
        priority=8,
        action=FallbackAction.SWITCH_DEVICE,
        conditions=frozenset({"device_issues"}),
    ),
    FallbackDescriptor(
        id="time_delay",
        name="Time Delay",
        description="Wait and retry later",
        tier=Tier.EMERGENCY,
        priority=9,
        action=FallbackAction.DELAYED_RETRY,
        conditions=frozenset({"rate_limited", "server_issues"}),
    ),
)


def by_tier(catalog: Iterable[FallbackDescriptor]) -> Dict[str, List[FallbackDescriptor]]:
    """Enabled descriptors grouped by tier, each group in priority order."""
    grouped: Dict[str, List[FallbackDescriptor]] = {tier.value: [] for tier in Tier}
    for descriptor in sorted(catalog, key=lambda d: (d.priority, d.id)):
        if descriptor.enabled:
            grouped[descriptor.tier.value].append(descriptor)
    return grouped
