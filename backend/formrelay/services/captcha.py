"""
reCAPTCHA verification.

A single POST to the provider's siteverify endpoint. Only the boolean
``success`` flag gates a submission unless a minimum v3 score is
configured. A verification call that fails outright is treated as a
rejection, never as a pass.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from formrelay.config import Settings

logger = logging.getLogger(__name__)

_VERIFY_TIMEOUT_SECONDS = 10.0


class CaptchaRejected(Exception):
    """The token was missing or the provider said no."""
    def __init__(self, message: str, error_codes: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.error_codes = error_codes or []


class CaptchaVerificationError(Exception):
    """The verification call itself failed (network, HTTP status, bad JSON)."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


@dataclass
class CaptchaResult:
    success: bool
    score: Optional[float] = None
    error_codes: list[str] = field(default_factory=list)


async def fetch_verification(
    token: str,
    settings: Settings,
    remote_ip: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> CaptchaResult:
    """
    Ask the provider whether ``token`` is valid.

    Raises:
        CaptchaVerificationError: on transport failure, a non-2xx status or
            an undecodable response body.
    """
    data = {"secret": settings.recaptcha_secret, "response": token}
    if remote_ip:
        data["remoteip"] = remote_ip

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=_VERIFY_TIMEOUT_SECONDS) as own_client:
                response = await own_client.post(settings.recaptcha_verify_url, data=data)
        else:
            response = await client.post(settings.recaptcha_verify_url, data=data)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPError as exc:
        raise CaptchaVerificationError(f"reCAPTCHA verification request failed: {exc}")
    except ValueError as exc:
        raise CaptchaVerificationError(f"reCAPTCHA verification returned invalid JSON: {exc}")

    if not isinstance(payload, dict):
        raise CaptchaVerificationError("reCAPTCHA verification returned an unexpected payload")

    score = payload.get("score")
    return CaptchaResult(
        success=payload.get("success") is True,
        score=float(score) if isinstance(score, (int, float)) else None,
        error_codes=[str(code) for code in payload.get("error-codes") or []],
    )


async def verify_captcha(
    token: Optional[str],
    settings: Settings,
    remote_ip: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> CaptchaResult:
    """
    Enforce the CAPTCHA check for one submission.

    Callers only invoke this when ``settings.captcha_enabled`` is true.

    Raises:
        CaptchaRejected: missing token, provider failure verdict, or a score
            below ``settings.recaptcha_min_score``.
        CaptchaVerificationError: the provider could not be reached.
    """
    if not token:
        raise CaptchaRejected("Missing reCAPTCHA token", ["missing-input-response"])

    result = await fetch_verification(token, settings, remote_ip=remote_ip, client=client)

    if not result.success:
        logger.warning("reCAPTCHA rejected submission: %s", result.error_codes)
        raise CaptchaRejected("reCAPTCHA verification failed", result.error_codes)

    threshold = settings.recaptcha_min_score
    if threshold is not None and (result.score is None or result.score < threshold):
        logger.warning("reCAPTCHA score %s below threshold %s", result.score, threshold)
        raise CaptchaRejected("reCAPTCHA score too low", ["score-below-threshold"])

    return result
