"""
Pairing Channels
================
Channel catalog, code helpers, strategies and registry.
"""

from .models import ChannelSpec, CHANNEL_SPECS
from .codes import (
    generate_numeric_code,
    generate_backup_code,
    normalize_code,
    codes_match,
    group_code,
)
from .strategies import (
    ChannelStrategy,
    PrimaryCodeStrategy,
    SMSStrategy,
    CallStrategy,
    EmailStrategy,
    BackupCodeStrategy,
)
from .registry import ChannelRegistry

__all__ = [
    # Models
    "ChannelSpec",
    "CHANNEL_SPECS",
    # Codes
    "generate_numeric_code",
    "generate_backup_code",
    "normalize_code",
    "codes_match",
    "group_code",
    # Strategies
    "ChannelStrategy",
    "PrimaryCodeStrategy",
    "SMSStrategy",
    "CallStrategy",
    "EmailStrategy",
    "BackupCodeStrategy",
    # Registry
    "ChannelRegistry",
]
