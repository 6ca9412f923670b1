"""
Form submission router.

Endpoints:
  POST    /notify   — normalize, validate, (optionally) verify CAPTCHA,
                      render and send one contact/quote submission
  OPTIONS /notify   — CORS preflight, always 200 with an empty body
  other             — 405

Every response from this router carries the CORS headers, including error
responses. All pipeline errors are translated to HTTP responses here and
nowhere else.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from formrelay.config import Settings, get_settings
from formrelay.services.body_normalizer import normalize_body
from formrelay.services.captcha import (
    CaptchaRejected,
    CaptchaVerificationError,
    verify_captcha,
)
from formrelay.services.dispatcher import dispatch
from formrelay.services.mailer import TransportFailure
from formrelay.services.renderer import render
from formrelay.services.validator import InvalidPayload, validate

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_METHODS = "POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type"

_ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

def resolve_allow_origin(request_origin: Optional[str], allow_origins: list[str]) -> tuple[str, bool]:
    """
    Pick the Access-Control-Allow-Origin value.

    Returns (value, echoed). "*" anywhere in the allow-list wins. Otherwise
    a listed request Origin is echoed back, and an unlisted one gets the
    first configured origin (which the browser will then refuse).
    """
    if not allow_origins or "*" in allow_origins:
        return "*", False
    if request_origin and request_origin in allow_origins:
        return request_origin, True
    return allow_origins[0], False


def _apply_cors(response: Response, request: Request, settings: Settings) -> Response:
    origin, echoed = resolve_allow_origin(request.headers.get("origin"), settings.allow_origins)
    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
    response.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
    if echoed:
        response.headers["Vary"] = "Origin"
    return response


def _error_response(status_code: int, message: str, details: Any = None) -> JSONResponse:
    """Build the {success: false, error, details?} body used for failures."""
    content: dict[str, Any] = {"success": False, "error": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _client_ip(request: Request) -> Optional[str]:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else None


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

async def handle_submission(request: Request, settings: Settings) -> Response:
    """Run one POST through normalize → validate → captcha → render → dispatch."""
    body = await normalize_body(request, settings.max_attachment_bytes)

    try:
        submission = validate(body)
    except InvalidPayload as exc:
        logger.warning("Rejected submission: %s", exc.message)
        return _error_response(400, exc.message, exc.error_code)

    logger.info(
        "Received %s submission (attachment: %s)",
        submission.kind.value,
        "yes" if submission.attachment else "no",
    )

    if settings.captcha_enabled:
        try:
            await verify_captcha(
                submission.recaptcha_token, settings, remote_ip=_client_ip(request)
            )
        except CaptchaRejected as exc:
            logger.warning("CAPTCHA rejected: %s", exc.message)
            return _error_response(400, exc.message, exc.error_codes)
        except CaptchaVerificationError as exc:
            logger.warning("CAPTCHA verification error: %s", exc.message)
            return _error_response(400, "reCAPTCHA verification failed")

    rendered = render(submission)

    try:
        message_id = await dispatch(rendered, settings)
    except TransportFailure:
        return _error_response(500, "Failed to send email")

    return JSONResponse(status_code=200, content={"success": True, "messageId": message_id})


@router.api_route("/notify", methods=_ALL_METHODS)
async def notify(request: Request, settings: Settings = Depends(get_settings)) -> Response:
    if request.method == "OPTIONS":
        return _apply_cors(Response(status_code=200), request, settings)

    if request.method != "POST":
        response = JSONResponse(status_code=405, content={"error": "Method not allowed"})
        response.headers["Allow"] = ALLOWED_METHODS
        return _apply_cors(response, request, settings)

    try:
        response = await handle_submission(request, settings)
    except Exception:
        logger.exception("Unexpected error while handling submission")
        response = _error_response(500, "Internal server error")
    return _apply_cors(response, request, settings)
