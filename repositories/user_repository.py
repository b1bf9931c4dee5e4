"""
User-directory access for the verification flow.

Only reads display names and flips ``email_verified``; account creation and
everything else about users belongs to the account service.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo.asynchronous.collection import AsyncCollection

from schemas.models.user import UserDoc


class UserRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def find_by_id(self, user_id: ObjectId) -> Optional[UserDoc]:
        doc = await self._col.find_one({"_id": user_id})
        return UserDoc.from_mongo(doc)

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        doc = await self._col.find_one({"email": email})
        return UserDoc.from_mongo(doc)

    async def mark_email_verified(self, user_id: ObjectId, now: datetime) -> bool:
        """Set ``email_verified`` on the account. Returns False if it does not exist."""
        result = await self._col.update_one(
            {"_id": user_id},
            {"$set": {"email_verified": True, "email_verified_at": now}},
        )
        return result.matched_count == 1
