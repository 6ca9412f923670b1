"""
Process configuration.

All environment access happens here, once, at startup. Request handling
receives a Settings instance through FastAPI's dependency injection
(``Depends(get_settings)``) so tests can swap it out via
``app.dependency_overrides``.

Environment variables
---------------------
SMTP_HOST, SMTP_PORT, SMTP_SECURE, SMTP_USER, SMTP_PASS, SMTP_TIMEOUT
                       Outbound SMTP relay.
MAIL_FROM              Sender address.
MAIL_TO, MAIL_CC       Comma-separated recipient lists.
ALLOW_ORIGIN           "*" or a comma-separated CORS allow-list.
RECAPTCHA_SECRET       Enables CAPTCHA verification when set.
RECAPTCHA_MIN_SCORE    Optional v3 score threshold.
RECAPTCHA_VERIFY_URL   Verification endpoint override.
MAX_ATTACHMENT_BYTES   Upper bound for an uploaded file.
"""

import logging
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
DEFAULT_MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024  # 10 MB

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _split_list(raw: Optional[str]) -> list[str]:
    """Split a comma-separated env value, dropping blanks."""
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r; using %d", name, raw, default)
        return default


def _env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


class Settings(BaseModel):
    """Static configuration for the relay. Immutable once built."""

    model_config = {"frozen": True}

    smtp_host: str = ""
    smtp_port: int = 465
    smtp_secure: bool = True
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_timeout: float = 30.0

    mail_from: str = "noreply@example.com"
    mail_to: list[str] = Field(default_factory=list)
    mail_cc: list[str] = Field(default_factory=list)

    allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    recaptcha_secret: str = ""
    recaptcha_min_score: Optional[float] = None
    recaptcha_verify_url: str = DEFAULT_RECAPTCHA_VERIFY_URL

    max_attachment_bytes: int = DEFAULT_MAX_ATTACHMENT_BYTES

    @property
    def captcha_enabled(self) -> bool:
        return bool(self.recaptcha_secret)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build Settings from os.environ (after loading any .env file)."""
        load_dotenv()

        secure_raw = os.getenv("SMTP_SECURE", "true").strip().lower()

        return cls(
            smtp_host=os.getenv("SMTP_HOST", "").strip(),
            smtp_port=_env_int("SMTP_PORT", 465),
            smtp_secure=secure_raw in _TRUE_VALUES,
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_pass=os.getenv("SMTP_PASS", ""),
            smtp_timeout=_env_float("SMTP_TIMEOUT", 30.0),
            mail_from=os.getenv("MAIL_FROM", "").strip() or "noreply@example.com",
            mail_to=_split_list(os.getenv("MAIL_TO")),
            mail_cc=_split_list(os.getenv("MAIL_CC")),
            allow_origins=_split_list(os.getenv("ALLOW_ORIGIN")) or ["*"],
            recaptcha_secret=os.getenv("RECAPTCHA_SECRET", "").strip(),
            recaptcha_min_score=_env_float("RECAPTCHA_MIN_SCORE"),
            recaptcha_verify_url=(
                os.getenv("RECAPTCHA_VERIFY_URL", "").strip()
                or DEFAULT_RECAPTCHA_VERIFY_URL
            ),
            max_attachment_bytes=_env_int(
                "MAX_ATTACHMENT_BYTES", DEFAULT_MAX_ATTACHMENT_BYTES
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first use."""
    return Settings.from_env()
