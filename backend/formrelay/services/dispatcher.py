"""
Dispatcher: hands a rendered message to the mail transport.

Adds the statically configured sender and recipients, sends, and returns
the delivery identifier. The underlying transport error is logged here;
callers only see TransportFailure.
"""

import logging

from formrelay.config import Settings
from formrelay.models.submission import RenderedMessage
from formrelay.services.mailer import TransportFailure, build_message, send_message

logger = logging.getLogger(__name__)


async def dispatch(rendered: RenderedMessage, settings: Settings) -> str:
    """
    Send ``rendered`` to MAIL_TO / MAIL_CC and return the Message-ID.

    Raises:
        TransportFailure: the relay rejected the message or was unreachable.
    """
    msg = build_message(
        sender=settings.mail_from,
        to=settings.mail_to,
        cc=settings.mail_cc,
        subject=rendered.subject,
        html_body=rendered.html_body,
        attachments=rendered.attachments,
    )

    try:
        message_id = await send_message(msg, settings.mail_to + settings.mail_cc, settings)
    except TransportFailure as exc:
        logger.error("Email sending failed (%s): %s", exc.error_code, exc.message)
        raise

    logger.info(
        "Email sent: %s (%d attachment(s))", message_id, len(rendered.attachments)
    )
    return message_id
