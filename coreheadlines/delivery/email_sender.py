"""
Email Digest Delivery
====================

Delivers the rendered digest as one HTML email over SMTP with implicit TLS.

Features:
- Single message per run, subject from settings
- Optional async preamble provider (economic indicators) merged into the body
- Blocking SMTP conversation executed in a worker thread
"""

import asyncio
import smtplib
import ssl
from email.message import EmailMessage
from typing import Awaitable, Callable, List, Optional, Tuple

import certifi

from ..config.settings import DeliverySettings, get_settings
from ..utils.exceptions import DeliveryError, ErrorCode
from ..utils.logging import get_logger_for_component
from .digest_formatter import build_digest_html


PreambleProvider = Callable[[], Awaitable[str]]


class EmailDigestSink:
    """Digest sink that sends the digest by email."""

    def __init__(
        self,
        settings: Optional[DeliverySettings] = None,
        preamble_provider: Optional[PreambleProvider] = None,
        smtp_factory: Callable[..., smtplib.SMTP_SSL] = smtplib.SMTP_SSL,
    ):
        """Initialize email sink.

        Args:
            settings: Delivery settings (default from config)
            preamble_provider: Coroutine function returning an HTML block
                placed before the headlines
            smtp_factory: SMTP client constructor
        """
        self.settings = settings or get_settings().delivery
        self.preamble_provider = preamble_provider
        self.smtp_factory = smtp_factory
        self._prepared: Optional[Tuple[Tuple[str, ...], EmailMessage]] = None
        self.logger = get_logger_for_component("email_sender")

    async def send(self, snippets: List[str]) -> None:
        """Send ``snippets`` as one digest email.

        Raises:
            ConfigurationError: If delivery settings are incomplete
            DeliveryError: If the SMTP conversation fails
        """
        self.settings.validate_delivery()

        message = await self._message_for(snippets)

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            error_code = (
                ErrorCode.DELIVERY_TIMEOUT
                if isinstance(e, TimeoutError)
                else ErrorCode.DELIVERY_FAILED
            )
            raise DeliveryError(
                f"SMTP delivery failed: {e}",
                article_count=len(snippets),
                error_code=error_code,
            ) from e

        self.logger.info(f"Delivered digest with {len(snippets)} headlines")

    async def _message_for(self, snippets: List[str]) -> EmailMessage:
        """Build the message once per snippet list; retries resend it unchanged."""
        key = tuple(snippets)
        if self._prepared is None or self._prepared[0] != key:
            preamble = await self._preamble()
            self._prepared = (key, self.build_message(build_digest_html(snippets, preamble)))
        return self._prepared[1]

    async def _preamble(self) -> str:
        if self.preamble_provider is None:
            return ""
        try:
            return await self.preamble_provider() or ""
        except Exception as e:
            self.logger.warning(f"Preamble unavailable, sending headlines only: {e}")
            return ""

    def build_message(self, body_html: str) -> EmailMessage:
        """Wrap ``body_html`` in a MIME message."""
        message = EmailMessage()
        message["From"] = self.settings.from_header
        message["To"] = self.settings.to_address
        message["Subject"] = self.settings.subject
        message.set_content(body_html, subtype="html", charset="utf-8")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        context = ssl.create_default_context(cafile=certifi.where())

        with self.smtp_factory(
            self.settings.smtp_host,
            self.settings.smtp_port,
            timeout=self.settings.timeout,
            context=context,
        ) as client:
            client.login(self.settings.smtp_user, self.settings.smtp_password)
            client.send_message(
                message,
                from_addr=self.settings.from_address,
                to_addrs=[self.settings.to_address],
            )
