"""SMTP email provider."""

import email.message
import email.policy
import re

import aiosmtplib
import structlog

from pairing_core.config import SMTPConfig
from pairing_core.exceptions import DeliveryError
from .base import DeliveryReceipt, EmailProvider

logger = structlog.get_logger(__name__)

_TAG_PATTERN = re.compile(r"<[^>]+>")


class SMTPEmailProvider(EmailProvider):
    """
    Async SMTP email sender using aiosmtplib.
    """

    name = "smtp"

    def __init__(self, config: SMTPConfig):
        self.config = config

    def build_message(self, to_address: str, subject: str, html_body: str) -> email.message.EmailMessage:
        message = email.message.EmailMessage(policy=email.policy.default)
        message["To"] = to_address
        message["From"] = self.config.from_email
        message["Subject"] = subject

        text_body = " ".join(_TAG_PATTERN.sub(" ", html_body).split())
        message.set_content(text_body, subtype="plain", charset="utf-8")
        message.add_alternative(html_body, subtype="html", charset="utf-8")
        return message

    async def send(self, to_address: str, subject: str, html_body: str) -> DeliveryReceipt:
        message = self.build_message(to_address, subject, html_body)

        try:
            await aiosmtplib.send(
                message,
                hostname=self.config.host,
                port=self.config.port,
                username=self.config.username or None,
                password=self.config.password or None,
                start_tls=self.config.use_tls,
                timeout=self.config.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", error=str(e))
            raise DeliveryError(str(e), provider=self.name) from e

        logger.info("email_sent", subject=subject)
        return DeliveryReceipt(provider=self.name, status="sent")
