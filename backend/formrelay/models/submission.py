"""
Pydantic models for form submissions.

Models:
  Kind             — submission category (contact / quote)
  Attachment       — a single uploaded file, already read into memory
  NormalizedBody   — raw field mapping produced by the body normalizer
  Submission       — validated, typed submission handed to the renderer
  RenderedMessage  — subject + HTML body + attachments handed to the dispatcher
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


FieldValue = Union[str, list[str]]


class Kind(str, Enum):
    """Which form the submission came from. Selects required fields and template."""

    CONTACT = "contact"
    QUOTE = "quote"


class Attachment(BaseModel):
    """A single file attachment, already read to raw bytes."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


class NormalizedBody(BaseModel):
    """
    Transport-agnostic view of a request body.

    JSON and multipart requests both end up here. Nothing is validated yet:
    an empty ``fields`` dict is a perfectly valid NormalizedBody.
    """

    # JSON bodies may carry numbers, booleans or nested values here
    fields: dict[str, Any] = Field(default_factory=dict)
    attachment: Optional[Attachment] = None
    # Set when a file was uploaded but exceeded the size limit; the validator
    # turns this into a rejection.
    attachment_too_large: bool = False


class Submission(BaseModel):
    """One validated form post. Built fresh per request and never mutated."""

    model_config = {"frozen": True}

    kind: Kind
    name: str
    email: str
    phone: Optional[str] = None

    # Contact
    message: Optional[str] = None

    # Quote
    company: Optional[str] = None
    category: Optional[str] = None
    service: Optional[str] = None
    budget: Optional[str] = None
    timeline: Optional[str] = None
    brief: Optional[str] = None
    goals: list[str] = Field(default_factory=list)
    references: Optional[str] = None

    submitted_at: Optional[str] = None
    recaptcha_token: Optional[str] = None
    attachment: Optional[Attachment] = None


class RenderedMessage(BaseModel):
    """Email ready for the dispatcher."""

    subject: str
    html_body: str
    attachments: list[Attachment] = Field(default_factory=list)
