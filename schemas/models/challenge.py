"""
Verification challenge document model.

Maps to the `email-verifications` MongoDB collection.

One document is one pending email-verification challenge. The token (link
verification) and the code (manual entry) are stored only as SHA-256 digests.
consumed flips to True on the successful attempt, right before the document
is deleted. attempt_count counts comparisons and never exceeds the configured
maximum; expires_at carries the TTL index.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from schemas.models.base import MongoBaseModel, PyObjectId
from shared.datetime_utils import ensure_utc

CHALLENGES_COLLECTION = "email-verifications"


class RequestOrigin(BaseModel):
    """Provenance of the issuing request. Never used for matching."""

    ip: Optional[str] = None
    user_agent: Optional[str] = None


class VerificationChallengeDoc(MongoBaseModel):
    """Document model for the `email-verifications` collection."""

    email: str
    token_hash: str
    code_hash: str
    account_id: Optional[PyObjectId] = None
    consumed: bool = False
    attempt_count: int = Field(default=0, ge=0)
    created_at: datetime
    expires_at: datetime
    consumed_at: Optional[datetime] = None
    request_origin: RequestOrigin = Field(default_factory=RequestOrigin)

    @field_validator("created_at", "expires_at", "consumed_at", mode="after")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
