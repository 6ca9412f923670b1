"""
Submission validator and classifier.

Decides the submission Kind, enforces the per-kind hard-required fields,
and converts the untyped field mapping into a typed Submission.

Policy: ``kind``, ``email`` and a usable name are hard-required for every
kind. Everything else is soft-required and is rendered with a placeholder
when missing.

Coalescing rules (the only place they are defined):
  name             Contact: name → fullName.  Quote: fullName → name.
  recaptcha_token  recaptchaToken → g-recaptcha-response
  goals            list stays a list (blank items dropped); a scalar
                   becomes a one-element list
  everything else  first element of a list, str() of numbers/booleans,
                   whitespace stripped, blank → missing
  line breaks      collapsed to one space outside message, brief and
                   references
"""

import logging
import re
from typing import Any, Optional

from formrelay.models.submission import Kind, NormalizedBody, Submission

logger = logging.getLogger(__name__)


class InvalidPayload(Exception):
    """Raised when a submission is missing hard-required fields."""
    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


# Each entry is a group of alternative field names; at least one per group
# must be non-blank. The first alternative is also the preferred source when
# coalescing.
REQUIRED_FIELDS: dict[Kind, tuple[tuple[str, ...], ...]] = {
    Kind.CONTACT: (("email",), ("name", "fullName")),
    Kind.QUOTE: (("email",), ("fullName", "name")),
}

_NAME_SOURCES: dict[Kind, tuple[str, ...]] = {
    Kind.CONTACT: ("name", "fullName"),
    Kind.QUOTE: ("fullName", "name"),
}

_ERROR_CODES = {
    "email": "missing_email",
    "name": "missing_name",
    "fullName": "missing_name",
}

# Submission attribute -> incoming field name, for plain optional scalars
_OPTIONAL_FIELDS = {
    "phone": "phone",
    "message": "message",
    "company": "company",
    "category": "category",
    "service": "service",
    "budget": "budget",
    "timeline": "timeline",
    "brief": "brief",
    "references": "references",
    "submitted_at": "submittedAt",
}

# Free-text fields keep their line breaks; every other value is one line
MULTILINE_FIELDS = {"message", "brief", "references"}

_LINE_BREAKS = re.compile(r"\s*[\r\n]+\s*")


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------

def _text(value: Any) -> Optional[str]:
    """Coerce one incoming value to a stripped string, or None if blank."""
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        value = "true" if value else "false"
    text = str(value).strip()
    return text or None


def _line(value: Any) -> Optional[str]:
    """Like _text, but collapses embedded line breaks to a single space."""
    text = _text(value)
    return _LINE_BREAKS.sub(" ", text) if text else text


def _text_list(value: Any) -> list[str]:
    if isinstance(value, list):
        items = [_line(v) for v in value]
        return [item for item in items if item]
    single = _line(value)
    return [single] if single else []


def _first(fields: dict[str, Any], names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        text = _line(fields.get(name))
        if text:
            return text
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def classify(fields: dict[str, Any]) -> Kind:
    """
    Determine the submission kind.

    "quote" (case-insensitive) is a Quote; any other non-blank value is a
    Contact. A missing or blank kind raises InvalidPayload.
    """
    kind = _text(fields.get("kind"))
    if not kind:
        raise InvalidPayload("Missing submission kind", "missing_kind")
    return Kind.QUOTE if kind.lower() == Kind.QUOTE.value else Kind.CONTACT


def check_required(kind: Kind, fields: dict[str, Any]) -> None:
    """Raise InvalidPayload for the first missing hard-required field group."""
    for alternatives in REQUIRED_FIELDS[kind]:
        if _first(fields, alternatives) is None:
            label = " or ".join(alternatives)
            raise InvalidPayload(
                f"Missing required field: {label}",
                _ERROR_CODES.get(alternatives[0], "missing_field"),
            )


def validate(body: NormalizedBody) -> Submission:
    """
    Classify and validate a normalized body, returning a typed Submission.

    Raises:
        InvalidPayload: missing kind, email or name, or an oversized attachment.
    """
    fields = body.fields
    kind = classify(fields)
    check_required(kind, fields)

    if body.attachment_too_large:
        raise InvalidPayload("Attachment is too large", "attachment_too_large")

    optional = {
        attr: (_text if attr in MULTILINE_FIELDS else _line)(fields.get(src))
        for attr, src in _OPTIONAL_FIELDS.items()
    }

    submission = Submission(
        kind=kind,
        name=_first(fields, _NAME_SOURCES[kind]),
        email=_line(fields.get("email")),
        goals=_text_list(fields.get("goals")),
        recaptcha_token=_first(fields, ("recaptchaToken", "g-recaptcha-response")),
        attachment=body.attachment,
        **optional,
    )
    logger.debug("Validated %s submission", kind.value)
    return submission
