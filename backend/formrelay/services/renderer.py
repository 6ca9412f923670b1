"""
Email renderer.

Builds the subject line and HTML body for a validated Submission. Pure: no
I/O, and the only source of non-determinism (the "submitted on" time when
the client did not send one) is the injectable ``now`` argument.

Every user-supplied value goes through html.escape before it touches the
template. Newlines in free-text fields become <br> *after* escaping.

Public API:
  render(submission, now=None) -> RenderedMessage
"""

import html
import logging
from datetime import datetime, timezone
from typing import Optional

from formrelay.models.submission import Kind, RenderedMessage, Submission

logger = logging.getLogger(__name__)

PLACEHOLDER = "N/A"
NO_MESSAGE = "(No message provided)"
NO_BRIEF = "(No brief provided)"

CONTACT_SUBJECT_PREFIX = "New Contact Message"
QUOTE_SUBJECT_PREFIX = "New Quote Request"

_HEADINGS = {
    Kind.CONTACT: "New Contact Message",
    Kind.QUOTE: "New Quote Request",
}

_TIMESTAMP_FORMAT = "%B %d, %Y %H:%M UTC"

_ACCENT = "#fe2681"


# ---------------------------------------------------------------------------
# Escaping helpers
# ---------------------------------------------------------------------------

def escape(value: str) -> str:
    """HTML-escape &, <, >, " and '."""
    return html.escape(value, quote=True)


def escape_multiline(value: str) -> str:
    """Escape, then turn every line break into <br>."""
    escaped = escape(value)
    return escaped.replace("\r\n", "\n").replace("\r", "\n").replace("\n", "<br>")


def _or_placeholder(value: Optional[str], placeholder: str = PLACEHOLDER) -> str:
    return escape(value) if value else placeholder


# ---------------------------------------------------------------------------
# Timestamp
# ---------------------------------------------------------------------------

def parse_submitted_at(value: str) -> Optional[datetime]:
    """
    Parse a client-supplied submission time.

    Accepts ISO-8601 ("2025-03-01T10:00:00Z") or a Unix timestamp in
    milliseconds ("1740823200000"). Naive values are read as UTC.
    Returns None when the value cannot be parsed.
    """
    text = value.strip()
    try:
        millis = float(text)
    except ValueError:
        pass
    else:
        try:
            return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_submitted_at(submitted_at: Optional[str], now: Optional[datetime] = None) -> str:
    """Return the footer timestamp text, already safe for HTML."""
    if submitted_at:
        parsed = parse_submitted_at(submitted_at)
        if parsed is None:
            logger.debug("Unparseable submittedAt %r; echoing as-is", submitted_at)
            return escape(submitted_at)
    else:
        parsed = now or datetime.now(timezone.utc)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime(_TIMESTAMP_FORMAT)


# ---------------------------------------------------------------------------
# Subject
# ---------------------------------------------------------------------------

def _one_line(value: Optional[str]) -> Optional[str]:
    # Header values must not contain CR or LF
    return " ".join(value.split()) if value else value


def render_subject(submission: Submission) -> str:
    name = escape(_one_line(submission.name))
    if submission.kind is Kind.QUOTE:
        category = _or_placeholder(_one_line(submission.category))
        service = _or_placeholder(_one_line(submission.service))
        return f"{QUOTE_SUBJECT_PREFIX}: {category} / {service} from {name}"
    return f"{CONTACT_SUBJECT_PREFIX} from {name}"


# ---------------------------------------------------------------------------
# Body
# ---------------------------------------------------------------------------

def _row(label: str, value_html: str) -> str:
    return f'<p><strong>{label}:</strong> {value_html}</p>'


def _block(label: str, value_html: str) -> str:
    return f'<p><strong>{label}:</strong><br>{value_html}</p>'


def _contact_rows(submission: Submission) -> list[str]:
    message = escape_multiline(submission.message) if submission.message else NO_MESSAGE
    return [_block("Message", message)]


def _quote_rows(submission: Submission) -> list[str]:
    goals = (
        ", ".join(escape(goal) for goal in submission.goals)
        if submission.goals
        else PLACEHOLDER
    )
    references = (
        escape_multiline(submission.references) if submission.references else PLACEHOLDER
    )
    brief = escape_multiline(submission.brief) if submission.brief else NO_BRIEF
    return [
        _row("Company", _or_placeholder(submission.company)),
        _row("Category", _or_placeholder(submission.category)),
        _row("Service", _or_placeholder(submission.service)),
        _row("Budget", _or_placeholder(submission.budget)),
        _row("Timeline", _or_placeholder(submission.timeline)),
        _row("Goals", goals),
        _row("Reference Links", references),
        _block("Brief", brief),
    ]


def render_body(submission: Submission, now: Optional[datetime] = None) -> str:
    email = escape(submission.email)
    rows = [
        f'<h2 style="color: {_ACCENT};">{_HEADINGS[submission.kind]}</h2>',
        _row("Name", escape(submission.name)),
        _row("Email", f'<a href="mailto:{email}">{email}</a>'),
        _row("Phone", _or_placeholder(submission.phone)),
    ]

    if submission.kind is Kind.QUOTE:
        rows.extend(_quote_rows(submission))
    else:
        rows.extend(_contact_rows(submission))

    rows.append('<hr style="margin-top: 20px;">')
    rows.append(
        '<p style="font-size: 0.9em; color: #777;">Submitted on '
        f"{format_submitted_at(submission.submitted_at, now)}</p>"
    )

    if submission.attachment is not None:
        rows.append(_row("Attachment", escape(submission.attachment.filename)))

    # No raw newlines in the body; line breaks are <br> only
    return (
        '<div style="font-family: Arial, sans-serif; color: #333; line-height: 1.6;">'
        + "".join(rows)
        + "</div>"
    )


def render(submission: Submission, now: Optional[datetime] = None) -> RenderedMessage:
    """
    Render a Submission into a RenderedMessage.

    Args:
        submission: A validated submission.
        now: Clock value used when the submission has no submittedAt.
             Defaults to the current UTC time.
    """
    attachments = [submission.attachment] if submission.attachment is not None else []
    return RenderedMessage(
        subject=render_subject(submission),
        html_body=render_body(submission, now),
        attachments=attachments,
    )
