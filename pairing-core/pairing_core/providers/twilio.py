"""
Twilio Delivery Providers
=========================
SMS and voice delivery through the Twilio REST API.
"""

from typing import Any, Dict, Optional
from xml.sax.saxutils import escape

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pairing_core.config import TwilioConfig
from pairing_core.exceptions import DeliveryError
from pairing_core.phone import mask_phone
from .base import DeliveryReceipt, SMSProvider, VoiceProvider

logger = structlog.get_logger(__name__)


class TwilioClient:
    """
    Thin async client for Twilio resources.

    Features:
    - Automatic retries on transport errors
    - httpx exception mapping to DeliveryError
    """

    name = "twilio"

    def __init__(
        self,
        config: TwilioConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 3,
        retry_wait: float = 0.5,
    ):
        self.config = config
        self.base_url = f"https://api.twilio.com/2010-04-01/Accounts/{config.account_sid}"
        self.max_retries = max_retries
        self.retry_wait = retry_wait
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        """Create HTTP client with auth."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=(self.config.account_sid, self.config.auth_token),
                timeout=self.config.timeout,
                transport=self._transport,
            )
            logger.info("provider_initialized", provider=self.name)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("provider_closed", provider=self.name)

    async def create(self, resource: str, payload: Dict[str, Any]) -> DeliveryReceipt:
        """POST a new Twilio resource (``Messages`` or ``Calls``)."""
        await self.initialize()
        url = f"{self.base_url}/{resource}.json"

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries),
                wait=wait_exponential(multiplier=self.retry_wait, max=4),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.post(url, data=payload)
        except httpx.TimeoutException as e:
            raise DeliveryError("Request timed out", provider=self.name) from e
        except httpx.TransportError as e:
            raise DeliveryError(f"Failed to connect: {e}", provider=self.name) from e

        if response.status_code != 201:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            message = error_data.get("message", "Unknown error")
            logger.error(
                "twilio_request_rejected",
                resource=resource,
                status_code=response.status_code,
                error_code=error_data.get("code"),
            )
            raise DeliveryError(message, provider=self.name, status_code=response.status_code)

        data = response.json()
        return DeliveryReceipt(
            provider=self.name,
            reference=data.get("sid"),
            status=data.get("status"),
        )


class TwilioSMSProvider(SMSProvider):
    """SMS delivery via Twilio Messages."""

    name = "twilio"

    def __init__(self, client: TwilioClient):
        self.client = client

    async def initialize(self) -> None:
        await self.client.initialize()

    async def close(self) -> None:
        await self.client.close()

    async def send(self, to_phone: str, body: str) -> DeliveryReceipt:
        receipt = await self.client.create("Messages", {
            "To": to_phone,
            "From": self.client.config.from_number,
            "Body": body,
        })
        logger.info("sms_sent", to=mask_phone(to_phone), sid=receipt.reference)
        return receipt


class TwilioVoiceProvider(VoiceProvider):
    """Voice delivery via Twilio Calls with inline TwiML."""

    name = "twilio"

    def __init__(self, client: TwilioClient, voice: str = "alice", language: str = "en-US"):
        self.client = client
        self.voice = voice
        self.language = language

    async def initialize(self) -> None:
        await self.client.initialize()

    async def close(self) -> None:
        await self.client.close()

    def build_twiml(self, script: str) -> str:
        """Wrap a spoken script in TwiML, one <Say> per paragraph."""
        says = "<Pause length=\"2\"/>".join(
            f'<Say voice="{self.voice}" language="{self.language}">{escape(part.strip())}</Say>'
            for part in script.split("\n\n") if part.strip()
        )
        return f"<Response>{says}</Response>"

    async def call(self, to_phone: str, script: str) -> DeliveryReceipt:
        receipt = await self.client.create("Calls", {
            "To": to_phone,
            "From": self.client.config.from_number,
            "Twiml": self.build_twiml(script),
        })
        logger.info("voice_call_placed", to=mask_phone(to_phone), sid=receipt.reference)
        return receipt
