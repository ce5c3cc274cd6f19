"""
Channel Models
==============
Static metadata for each verification channel.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

from pairing_core.models import Channel


@dataclass(frozen=True)
class ChannelSpec:
    """Catalog entry describing a verification channel."""
    channel: Channel
    name: str
    description: str
    priority: int
    timeout: int  # seconds, 0 = no expiry
    code_length: int
    group_size: int
    requires: Tuple[str, ...] = field(default_factory=tuple)
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.channel.value,
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "requirements": list(self.requires),
            "timeout": self.timeout,
        }


CHANNEL_SPECS: Mapping[Channel, ChannelSpec] = {
    Channel.PRIMARY: ChannelSpec(
        channel=Channel.PRIMARY,
        name="8-Digit Code",
        description="Primary method using the linked-device pairing code",
        priority=1,
        timeout=600,
        code_length=8,
        group_size=4,
        requires=("phone",),
    ),
    Channel.SMS: ChannelSpec(
        channel=Channel.SMS,
        name="SMS Code",
        description="Fallback method sending code via SMS",
        priority=2,
        timeout=300,
        code_length=6,
        group_size=3,
        requires=("phone",),
    ),
    Channel.CALL: ChannelSpec(
        channel=Channel.CALL,
        name="Call Verification",
        description="Automated call with voice code",
        priority=3,
        timeout=300,
        code_length=6,
        group_size=3,
        requires=("phone",),
    ),
    Channel.EMAIL: ChannelSpec(
        channel=Channel.EMAIL,
        name="Email Code",
        description="Send code to registered email",
        priority=4,
        timeout=600,
        code_length=6,
        group_size=3,
        requires=("email",),
    ),
    Channel.BACKUP: ChannelSpec(
        channel=Channel.BACKUP,
        name="Backup Code",
        description="Pre-generated backup codes",
        priority=5,
        timeout=0,
        code_length=12,
        group_size=4,
    ),
}
