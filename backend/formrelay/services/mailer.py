"""
SMTP mail transport.

Builds a MIME message (HTML body + optional attachment) and hands it to the
configured relay with aiosmtplib. No retries: a failed send surfaces as
TransportFailure and the caller decides what to tell the client.
"""

import logging
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Optional

import aiosmtplib

from formrelay.config import Settings
from formrelay.models.submission import Attachment

logger = logging.getLogger(__name__)


class TransportFailure(Exception):
    """The SMTP relay rejected the message or could not be reached."""
    def __init__(self, message: str, error_code: str = "transport_failure"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


def _sender_domain(address: str) -> Optional[str]:
    if "@" not in address:
        return None
    _, _, domain = address.rpartition("@")
    return domain.strip(" >") or None


def _attachment_part(attachment: Attachment) -> MIMEBase:
    maintype, _, subtype = attachment.content_type.partition("/")
    if not maintype or not subtype:
        maintype, subtype = "application", "octet-stream"
    part = MIMEBase(maintype, subtype)
    part.set_payload(attachment.content)
    encoders.encode_base64(part)
    part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
    return part


def build_message(
    sender: str,
    to: list[str],
    cc: list[str],
    subject: str,
    html_body: str,
    attachments: list[Attachment],
) -> MIMEMultipart:
    """Assemble a multipart/mixed message with a generated Message-ID."""
    msg = MIMEMultipart("mixed")
    msg["From"] = sender
    msg["To"] = ", ".join(to)
    if cc:
        msg["Cc"] = ", ".join(cc)
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=False)
    msg["Message-ID"] = make_msgid(domain=_sender_domain(sender))

    msg.attach(MIMEText(html_body, "html", "utf-8"))
    for attachment in attachments:
        msg.attach(_attachment_part(attachment))
    return msg


async def send_message(msg: MIMEMultipart, recipients: list[str], settings: Settings) -> str:
    """
    Deliver ``msg`` through the configured relay and return its Message-ID.

    SMTP_SECURE selects implicit TLS (typically port 465). Otherwise
    aiosmtplib upgrades with STARTTLS when the server offers it.

    Raises:
        TransportFailure: relay not configured, unreachable, or rejecting.
    """
    if not settings.smtp_host:
        raise TransportFailure("SMTP_HOST is not configured", "transport_not_configured")
    if not recipients:
        raise TransportFailure("No recipients configured (MAIL_TO)", "transport_not_configured")

    try:
        await aiosmtplib.send(
            msg,
            sender=settings.mail_from,
            recipients=recipients,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user or None,
            password=settings.smtp_pass or None,
            use_tls=settings.smtp_secure,
            start_tls=False if settings.smtp_secure else None,
            timeout=settings.smtp_timeout,
        )
    except (aiosmtplib.SMTPException, OSError) as exc:
        raise TransportFailure(f"SMTP delivery failed: {exc}") from exc

    return msg["Message-ID"]
