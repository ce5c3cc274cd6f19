"""
In-Memory Providers
===================
Recording providers for development and testing.
"""

import uuid
from typing import List, Optional, Tuple

from pairing_core.exceptions import DeliveryError
from .base import DeliveryReceipt, EmailProvider, SMSProvider, VoiceProvider


class _Recorder:
    name = "memory"

    def __init__(self, fail_with: Optional[str] = None):
        """
        Args:
            fail_with: When set, every delivery raises DeliveryError with this message
        """
        self.fail_with = fail_with

    def _deliver(self) -> DeliveryReceipt:
        if self.fail_with:
            raise DeliveryError(self.fail_with, provider=self.name)
        return DeliveryReceipt(provider=self.name, reference=uuid.uuid4().hex, status="sent")


class RecordingSMSProvider(_Recorder, SMSProvider):
    """Keeps sent messages in ``messages``."""

    def __init__(self, fail_with: Optional[str] = None):
        super().__init__(fail_with)
        self.messages: List[Tuple[str, str]] = []

    async def send(self, to_phone: str, body: str) -> DeliveryReceipt:
        receipt = self._deliver()
        self.messages.append((to_phone, body))
        return receipt


class RecordingVoiceProvider(_Recorder, VoiceProvider):
    """Keeps placed calls in ``calls``."""

    def __init__(self, fail_with: Optional[str] = None):
        super().__init__(fail_with)
        self.calls: List[Tuple[str, str]] = []

    async def call(self, to_phone: str, script: str) -> DeliveryReceipt:
        receipt = self._deliver()
        self.calls.append((to_phone, script))
        return receipt


class RecordingEmailProvider(_Recorder, EmailProvider):
    """Keeps sent emails in ``emails``."""

    def __init__(self, fail_with: Optional[str] = None):
        super().__init__(fail_with)
        self.emails: List[Tuple[str, str, str]] = []

    async def send(self, to_address: str, subject: str, html_body: str) -> DeliveryReceipt:
        receipt = self._deliver()
        self.emails.append((to_address, subject, html_body))
        return receipt
