#!/usr/bin/env python3
"""
Email Delivery Tests
===================

Tests for message construction and the SMTP conversation, with the SMTP
client replaced by a mock.
"""

import smtplib
import pytest
from unittest.mock import AsyncMock, MagicMock

from coreheadlines.config.settings import DeliverySettings
from coreheadlines.delivery.email_sender import EmailDigestSink
from coreheadlines.utils.exceptions import ConfigurationError, DeliveryError


@pytest.fixture
def smtp_factory():
    return MagicMock()


@pytest.fixture
def smtp_client(smtp_factory):
    return smtp_factory.return_value.__enter__.return_value


@pytest.fixture
def sink(test_settings, smtp_factory):
    return EmailDigestSink(test_settings.delivery, smtp_factory=smtp_factory)


class TestEmailDigestSink:

    @pytest.mark.asyncio
    async def test_sends_one_html_message(self, sink, smtp_factory, smtp_client):
        await sink.send(["<p>first</p>", "<p>second</p>"])

        args, kwargs = smtp_factory.call_args
        assert args == ("smtp.example.com", 465)
        assert kwargs["timeout"] == 30.0

        smtp_client.login.assert_called_once_with("digest@example.com", "secret")
        smtp_client.send_message.assert_called_once()

        message = smtp_client.send_message.call_args.args[0]
        assert message["Subject"] == "Core Headlines"
        assert message["To"] == "reader@example.com"
        assert message.get_content_type() == "text/html"

        body = message.get_content()
        assert body.index("<p>first</p>") < body.index("<p>second</p>")

        send_kwargs = smtp_client.send_message.call_args.kwargs
        assert send_kwargs["from_addr"] == "digest@example.com"
        assert send_kwargs["to_addrs"] == ["reader@example.com"]

    @pytest.mark.asyncio
    async def test_preamble_included(self, test_settings, smtp_factory, smtp_client):
        provider = AsyncMock(return_value="<div>indicators</div>")
        sink = EmailDigestSink(test_settings.delivery, preamble_provider=provider, smtp_factory=smtp_factory)

        await sink.send(["<p>first</p>"])

        body = smtp_client.send_message.call_args.args[0].get_content()
        assert body.index("<div>indicators</div>") < body.index("<p>first</p>")

    @pytest.mark.asyncio
    async def test_failing_preamble_does_not_block_delivery(self, test_settings, smtp_factory, smtp_client):
        provider = AsyncMock(side_effect=RuntimeError("api down"))
        sink = EmailDigestSink(test_settings.delivery, preamble_provider=provider, smtp_factory=smtp_factory)

        await sink.send(["<p>first</p>"])

        smtp_client.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_smtp_failure_raises_delivery_error(self, sink, smtp_client):
        smtp_client.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

        with pytest.raises(DeliveryError) as exc_info:
            await sink.send(["<p>first</p>"])

        assert exc_info.value.context["article_count"] == 1

    @pytest.mark.asyncio
    async def test_incomplete_settings_rejected(self, smtp_factory):
        sink = EmailDigestSink(DeliverySettings(), smtp_factory=smtp_factory)

        with pytest.raises(ConfigurationError):
            await sink.send(["<p>first</p>"])

        smtp_factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_resend_uses_identical_message(self, test_settings, smtp_factory, smtp_client):
        provider = AsyncMock(side_effect=["<div>first</div>", "<div>second</div>"])
        sink = EmailDigestSink(test_settings.delivery, preamble_provider=provider, smtp_factory=smtp_factory)
        smtp_client.send_message.side_effect = [smtplib.SMTPServerDisconnected("dropped"), None]

        with pytest.raises(DeliveryError):
            await sink.send(["<p>first</p>"])
        await sink.send(["<p>first</p>"])

        sent = [call.args[0].get_content() for call in smtp_client.send_message.call_args_list]
        assert len(sent) == 2
        assert sent[0] == sent[1]
        assert "<div>first</div>" in sent[1]
        provider.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_new_snippets_rebuild_message(self, test_settings, smtp_factory, smtp_client):
        provider = AsyncMock(return_value="<div>indicators</div>")
        sink = EmailDigestSink(test_settings.delivery, preamble_provider=provider, smtp_factory=smtp_factory)

        await sink.send(["<p>first</p>"])
        await sink.send(["<p>second</p>"])

        body = smtp_client.send_message.call_args.args[0].get_content()
        assert "<p>second</p>" in body
        assert provider.await_count == 2
