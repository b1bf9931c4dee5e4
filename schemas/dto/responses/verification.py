"""
Response DTOs for email verification endpoints.

SendVerificationResponse     POST /send, POST /resend
VerifyEmailResponse          POST /verify (200)
VerificationStatusResponse   GET /status/{token}
CleanupResponse              DELETE /cleanup
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class VerificationDebug(BaseModel):
    """Plaintext challenge values, only returned outside production."""

    model_config = ConfigDict(populate_by_name=True)

    code: str
    token: str


class SendVerificationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    email: str
    expires_at: datetime
    email_sent: bool
    debug: Optional[VerificationDebug] = None


class VerifiedUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    email: str


class VerifyEmailResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    email: str
    verified: bool = True
    user: Optional[VerifiedUser] = None


class VerificationStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    verified: bool
    expired: bool
    attempts: int
    max_attempts: int
    expires_at: datetime
    created_at: datetime


class CleanupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    deleted_count: int
