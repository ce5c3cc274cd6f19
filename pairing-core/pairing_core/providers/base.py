"""
Delivery Provider Interfaces
============================
Uniform send interfaces for SMS, voice and email delivery.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class DeliveryReceipt:
    """Acknowledgement returned by a provider after a successful send."""
    provider: str
    reference: Optional[str] = None
    status: Optional[str] = None


class DeliveryProvider(ABC):
    """Lifecycle shared by all delivery providers."""

    name: str = "base"

    async def initialize(self) -> None:
        """Acquire resources (e.g., HTTP clients)."""

    async def close(self) -> None:
        """Release resources."""


class SMSProvider(DeliveryProvider):
    """Sends text messages."""

    @abstractmethod
    async def send(self, to_phone: str, body: str) -> DeliveryReceipt:
        """
        Send an SMS.

        Raises:
            DeliveryError: If the provider rejects or cannot deliver
        """


class VoiceProvider(DeliveryProvider):
    """Places calls that read a script aloud."""

    @abstractmethod
    async def call(self, to_phone: str, script: str) -> DeliveryReceipt:
        """
        Place a voice call speaking ``script``.

        Raises:
            DeliveryError: If the call could not be placed
        """


class EmailProvider(DeliveryProvider):
    """Sends HTML email."""

    @abstractmethod
    async def send(self, to_address: str, subject: str, html_body: str) -> DeliveryReceipt:
        """
        Send an email.

        Raises:
            DeliveryError: If the message could not be sent
        """
