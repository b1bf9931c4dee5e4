"""
User document model.

Maps to the `users` MongoDB collection.

Accounts are owned by the account service; this service reads the display
name and flips email_verified, nothing else. Unknown fields are ignored.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel

USERS_COLLECTION = "users"


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection (the fields used here)."""

    email: str
    name: Optional[str] = None
    email_verified: bool = False
    email_verified_at: Optional[datetime] = None
