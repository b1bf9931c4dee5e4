"""
Request DTOs for email verification endpoints.

SendVerificationRequest     POST /api/email-verification/send
ResendVerificationRequest   POST /api/email-verification/resend
VerifyEmailRequest          POST /api/email-verification/verify
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SendVerificationRequest(BaseModel):
    """Request body for POST /send.

    ``user_id`` links the challenge to an existing (or about to be created)
    account whose verified flag is flipped on success.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str
    user_id: str | None = Field(default=None, alias="userId")


class ResendVerificationRequest(BaseModel):
    """Request body for POST /resend."""

    model_config = ConfigDict(populate_by_name=True)

    email: str


class VerifyEmailRequest(BaseModel):
    """Request body for POST /verify.

    Either ``token`` (from the emailed link) or ``code`` together with
    ``email`` (manual entry) must be present.
    """

    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    code: str | None = None
    email: str | None = None
