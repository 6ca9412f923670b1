"""
Request body normalizer.

Turns an inbound request body into a NormalizedBody (field mapping plus an
optional attachment) regardless of how the browser encoded it:

  application/json       — parsed with json.loads; anything that is not a
                           JSON object degrades to an empty mapping
  multipart/form-data    — parsed by Starlette's form parser; multi-valued
                           fields collapse to their first value except
                           "goals", and the file in the "attachment" part
                           is read into memory
  anything else          — best-effort JSON

The normalizer never raises for bad input. Missing fields are the
validator's problem, not ours.
"""

import json
import logging
from typing import Any, Optional

from starlette.datastructures import FormData, UploadFile
from starlette.requests import Request

from formrelay.models.submission import Attachment, FieldValue, NormalizedBody

logger = logging.getLogger(__name__)

ATTACHMENT_FIELD = "attachment"

# Fields whose repeated values are kept as a list instead of collapsing.
LIST_FIELDS = {"goals"}


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------

def parse_json_fields(raw: bytes) -> dict[str, Any]:
    """
    Decode a JSON request body into a field mapping.

    Malformed JSON, an empty body, or a top-level value that is not an
    object all return {}.
    """
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        logger.info("Request body is not valid JSON (%s); treating as empty", exc)
        return {}
    if not isinstance(data, dict):
        logger.info("JSON body is a %s, not an object; treating as empty", type(data).__name__)
        return {}
    return data


# ---------------------------------------------------------------------------
# Multipart
# ---------------------------------------------------------------------------

def _field_key(key: str) -> str:
    # PHP-style "goals[]" naming is common in hand-written forms
    return key[:-2] if key.endswith("[]") else key


def collect_form_fields(form: FormData) -> dict[str, FieldValue]:
    """
    Flatten multipart form data into single values.

    File parts are skipped here; see read_attachment.
    """
    fields: dict[str, FieldValue] = {}
    for raw_key in form.keys():
        key = _field_key(raw_key)
        if key == ATTACHMENT_FIELD:
            continue
        values = [v for v in form.getlist(raw_key) if isinstance(v, str)]
        if not values:
            continue

        if key in LIST_FIELDS:
            existing = fields.get(key)
            merged = (
                ([existing] if isinstance(existing, str) else list(existing or []))
                + values
            )
            fields[key] = merged if len(merged) > 1 else merged[0]
        elif key not in fields:
            fields[key] = values[0]
    return fields


async def read_attachment(
    form: FormData,
    max_bytes: int,
) -> tuple[Optional[Attachment], bool]:
    """
    Read the first file uploaded under the "attachment" field.

    Returns (attachment, too_large). Unreadable temp files and empty file
    inputs yield (None, False).
    """
    upload = next(
        (v for v in form.getlist(ATTACHMENT_FIELD) if isinstance(v, UploadFile)),
        None,
    )
    if upload is None:
        return None, False

    try:
        content = await upload.read(max_bytes + 1)
    except OSError as exc:
        logger.warning("Could not read uploaded attachment %r: %s", upload.filename, exc)
        return None, False

    if len(content) > max_bytes:
        logger.warning(
            "Attachment %r exceeds %d bytes; not retained", upload.filename, max_bytes
        )
        return None, True

    if not upload.filename and not content:
        # Browser submitted an empty <input type="file">
        return None, False

    return (
        Attachment(
            filename=upload.filename or ATTACHMENT_FIELD,
            content=content,
            content_type=upload.content_type or "application/octet-stream",
        ),
        False,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

async def normalize_body(request: Request, max_attachment_bytes: int) -> NormalizedBody:
    """Normalize a JSON or multipart request body. Never raises for bad input."""
    content_type = (request.headers.get("content-type") or "").lower()

    if content_type.startswith("multipart/form-data"):
        try:
            async with request.form() as form:
                fields = collect_form_fields(form)
                attachment, too_large = await read_attachment(form, max_attachment_bytes)
        except Exception as exc:
            logger.warning("Could not parse multipart body: %s", exc)
            return NormalizedBody()
        return NormalizedBody(
            fields=fields,
            attachment=attachment,
            attachment_too_large=too_large,
        )

    if not content_type.startswith("application/json"):
        logger.debug("Unexpected content type %r; trying JSON", content_type)

    try:
        raw = await request.body()
    except Exception as exc:
        logger.warning("Could not read request body: %s", exc)
        return NormalizedBody()
    return NormalizedBody(fields=parse_json_fields(raw))
