"""
Mail transport and dispatcher tests.

aiosmtplib.send is always mocked; no SMTP connections are made.
"""

import logging
from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from formrelay.config import Settings
from formrelay.models.submission import Attachment, RenderedMessage
from formrelay.services.dispatcher import dispatch
from formrelay.services.mailer import TransportFailure, build_message, send_message


def _settings(**overrides) -> Settings:
    values = {
        "smtp_host": "smtp.example.com",
        "smtp_port": 465,
        "smtp_user": "relay-user",
        "smtp_pass": "relay-pass",
        "mail_from": "forms@example.com",
        "mail_to": ["team@example.com", "sales@example.com"],
        "mail_cc": ["boss@example.com"],
    }
    values.update(overrides)
    return Settings(**values)


def _rendered(attachments=None) -> RenderedMessage:
    return RenderedMessage(
        subject="New Contact Message from Jane Doe",
        html_body="<p>Hello<br>World</p>",
        attachments=attachments or [],
    )


# ---------------------------------------------------------------------------
# build_message()
# ---------------------------------------------------------------------------

class TestBuildMessage:

    def test_headers(self):
        msg = build_message(
            sender="forms@example.com",
            to=["team@example.com", "sales@example.com"],
            cc=["boss@example.com"],
            subject="Hi",
            html_body="<p>x</p>",
            attachments=[],
        )
        assert msg["From"] == "forms@example.com"
        assert msg["To"] == "team@example.com, sales@example.com"
        assert msg["Cc"] == "boss@example.com"
        assert msg["Subject"] == "Hi"
        assert msg["Message-ID"].endswith("@example.com>")

    def test_no_cc_header_without_cc(self):
        msg = build_message("f@example.com", ["t@example.com"], [], "Hi", "<p>x</p>", [])
        assert msg["Cc"] is None

    def test_html_part(self):
        msg = build_message("f@example.com", ["t@example.com"], [], "Hi", "<p>Hello</p>", [])
        parts = msg.get_payload()
        assert len(parts) == 1
        assert parts[0].get_content_type() == "text/html"
        assert parts[0].get_payload(decode=True).decode("utf-8") == "<p>Hello</p>"

    def test_attachment_part(self):
        attachment = Attachment(filename="brief.pdf", content=b"PDFDATA", content_type="application/pdf")
        msg = build_message("f@example.com", ["t@example.com"], [], "Hi", "<p>x</p>", [attachment])
        parts = msg.get_payload()
        assert len(parts) == 2
        part = parts[1]
        assert part.get_content_type() == "application/pdf"
        assert part.get_filename() == "brief.pdf"
        assert part.get_payload(decode=True) == b"PDFDATA"

    def test_bogus_content_type_falls_back_to_octet_stream(self):
        attachment = Attachment(filename="x", content=b"x", content_type="nonsense")
        msg = build_message("f@example.com", ["t@example.com"], [], "Hi", "<p>x</p>", [attachment])
        assert msg.get_payload()[1].get_content_type() == "application/octet-stream"


# ---------------------------------------------------------------------------
# send_message()
# ---------------------------------------------------------------------------

class TestSendMessage:

    @pytest.mark.asyncio
    async def test_sends_via_implicit_tls(self):
        settings = _settings()
        msg = build_message("forms@example.com", ["team@example.com"], [], "Hi", "<p>x</p>", [])

        with patch("formrelay.services.mailer.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            message_id = await send_message(msg, ["team@example.com"], settings)

        assert message_id == msg["Message-ID"]
        kwargs = mock_send.await_args.kwargs
        assert kwargs["hostname"] == "smtp.example.com"
        assert kwargs["port"] == 465
        assert kwargs["username"] == "relay-user"
        assert kwargs["password"] == "relay-pass"
        assert kwargs["use_tls"] is True
        assert kwargs["start_tls"] is False
        assert kwargs["recipients"] == ["team@example.com"]

    @pytest.mark.asyncio
    async def test_starttls_mode_without_credentials(self):
        settings = _settings(smtp_secure=False, smtp_port=587, smtp_user="", smtp_pass="")
        msg = build_message("forms@example.com", ["team@example.com"], [], "Hi", "<p>x</p>", [])

        with patch("formrelay.services.mailer.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            await send_message(msg, ["team@example.com"], settings)

        kwargs = mock_send.await_args.kwargs
        assert kwargs["use_tls"] is False
        assert kwargs["start_tls"] is None
        assert kwargs["username"] is None
        assert kwargs["password"] is None

    @pytest.mark.asyncio
    async def test_unconfigured_host_raises(self):
        msg = build_message("forms@example.com", ["team@example.com"], [], "Hi", "<p>x</p>", [])
        with pytest.raises(TransportFailure) as exc_info:
            await send_message(msg, ["team@example.com"], _settings(smtp_host=""))
        assert exc_info.value.error_code == "transport_not_configured"

    @pytest.mark.asyncio
    async def test_no_recipients_raises(self):
        msg = build_message("forms@example.com", [], [], "Hi", "<p>x</p>", [])
        with pytest.raises(TransportFailure):
            await send_message(msg, [], _settings())

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            aiosmtplib.SMTPConnectError("connection refused"),
            aiosmtplib.SMTPAuthenticationError(535, "bad credentials"),
            ConnectionRefusedError("refused"),
        ],
    )
    async def test_transport_errors_become_transport_failure(self, error):
        msg = build_message("forms@example.com", ["team@example.com"], [], "Hi", "<p>x</p>", [])
        with patch(
            "formrelay.services.mailer.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            with pytest.raises(TransportFailure):
                await send_message(msg, ["team@example.com"], _settings())


# ---------------------------------------------------------------------------
# dispatch()
# ---------------------------------------------------------------------------

class TestDispatch:

    @pytest.mark.asyncio
    async def test_sends_to_configured_recipients(self):
        with patch(
            "formrelay.services.dispatcher.send_message",
            new_callable=AsyncMock,
            return_value="<abc@example.com>",
        ) as mock_send:
            message_id = await dispatch(_rendered(), _settings())

        assert message_id == "<abc@example.com>"
        msg, recipients, _ = mock_send.await_args.args
        assert recipients == ["team@example.com", "sales@example.com", "boss@example.com"]
        assert msg["Subject"] == "New Contact Message from Jane Doe"
        assert msg["From"] == "forms@example.com"

    @pytest.mark.asyncio
    async def test_carries_attachment(self):
        attachment = Attachment(filename="x.pdf", content=b"PDFDATA", content_type="application/pdf")
        with patch(
            "formrelay.services.dispatcher.send_message",
            new_callable=AsyncMock,
            return_value="<abc@example.com>",
        ) as mock_send:
            await dispatch(_rendered([attachment]), _settings())

        msg = mock_send.await_args.args[0]
        assert msg.get_payload()[1].get_filename() == "x.pdf"

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_reraised(self, caplog):
        with patch(
            "formrelay.services.dispatcher.send_message",
            new_callable=AsyncMock,
            side_effect=TransportFailure("SMTP delivery failed: 535 bad credentials"),
        ):
            with caplog.at_level(logging.ERROR, logger="formrelay.services.dispatcher"):
                with pytest.raises(TransportFailure):
                    await dispatch(_rendered(), _settings())

        assert "535 bad credentials" in caplog.text
