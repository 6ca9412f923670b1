"""
formrelay API
FastAPI application that relays contact and quote form submissions by email.
"""

import logging

from fastapi import FastAPI

from formrelay.config import get_settings
from formrelay.routers import notify

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="formrelay API",
    description="Contact and quote form submissions relayed over SMTP",
    version="0.1.0",
)

# CORS headers are set per-response by the notify router (errors and 405s included)
app.include_router(notify.router, prefix="/api", tags=["notify"])


@app.on_event("startup")
async def log_startup_config() -> None:
    """Log which collaborators are configured, without any secrets."""
    settings = get_settings()
    logger.info(
        "formrelay ready: smtp=%s:%s recipients=%d cc=%d captcha=%s origins=%s",
        settings.smtp_host or "(unset)",
        settings.smtp_port,
        len(settings.mail_to),
        len(settings.mail_cc),
        "on" if settings.captcha_enabled else "off",
        ",".join(settings.allow_origins),
    )
    if not settings.smtp_host or not settings.mail_to:
        logger.warning("SMTP_HOST or MAIL_TO is not set; every send will fail")


@app.get("/")
async def root():
    return {"message": "formrelay API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}
