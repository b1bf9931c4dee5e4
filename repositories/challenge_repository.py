"""
MongoDB persistence for verification challenges.

Every state transition the registry needs is a single atomic MongoDB
operation. The two compare-and-swap updates (``increment_attempts`` and
``mark_consumed``) are guarded on the attempt count the caller observed, so
concurrent verify requests against one challenge serialize on the server.

Per-email issuance is serialized by a partial unique index on ``email`` that
only covers unconsumed challenges.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError

from schemas.models.challenge import VerificationChallengeDoc
from shared.logging import get_logger

log = get_logger(__name__)


class ChallengeRepository:
    """Async repository over the `email-verifications` collection."""

    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("token_hash", ASCENDING)], unique=True)
        await self._col.create_index([("email", ASCENDING), ("consumed", ASCENDING)])
        # At most one unconsumed challenge per address
        await self._col.create_index(
            [("email", ASCENDING)],
            name="email_active_unique",
            unique=True,
            partialFilterExpression={"consumed": False},
        )
        # Passive reaping; reap_expired() covers deployments without TTL monitors
        await self._col.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)

    async def replace_active(self, doc: VerificationChallengeDoc) -> ObjectId:
        """Delete unconsumed challenges for ``doc.email`` and insert *doc*.

        A DuplicateKeyError on insert means another issuer for the same
        address got in between the delete and the insert; that challenge is
        superseded in turn on the next pass. Every such error is another
        issuer's successful insert, so the loop always makes progress.

        Returns:
            The inserted document's ObjectId.

        Raises:
            DuplicateKeyError: if *doc*'s token hash is already stored.
        """
        data = doc.to_mongo()
        attempt = 0
        while True:
            attempt += 1
            deleted = await self._col.delete_many(
                {"email": doc.email, "consumed": False}
            )
            if deleted.deleted_count:
                log.info(
                    "verification_challenges_superseded",
                    count=deleted.deleted_count,
                )
            try:
                result = await self._col.insert_one(dict(data))
                return result.inserted_id
            except DuplicateKeyError:
                if await self._col.find_one({"token_hash": doc.token_hash}):
                    raise
                log.warning("verification_issue_conflict", attempt=attempt)

    async def find_unconsumed_by_id(
        self, challenge_id: ObjectId
    ) -> Optional[VerificationChallengeDoc]:
        doc = await self._col.find_one({"_id": challenge_id, "consumed": False})
        return VerificationChallengeDoc.from_mongo(doc)

    async def find_unconsumed_by_token_hash(
        self, token_hash: str
    ) -> Optional[VerificationChallengeDoc]:
        doc = await self._col.find_one({"token_hash": token_hash, "consumed": False})
        return VerificationChallengeDoc.from_mongo(doc)

    async def find_unconsumed_by_code_hash(
        self, code_hash: str, email: str
    ) -> Optional[VerificationChallengeDoc]:
        doc = await self._col.find_one(
            {"code_hash": code_hash, "email": email, "consumed": False}
        )
        return VerificationChallengeDoc.from_mongo(doc)

    async def find_unconsumed_by_email(
        self, email: str
    ) -> Optional[VerificationChallengeDoc]:
        doc = await self._col.find_one(
            {"email": email, "consumed": False},
            sort=[("created_at", DESCENDING)],
        )
        return VerificationChallengeDoc.from_mongo(doc)

    async def find_by_token_hash(
        self, token_hash: str
    ) -> Optional[VerificationChallengeDoc]:
        """Find by token regardless of state (status polling)."""
        doc = await self._col.find_one({"token_hash": token_hash})
        return VerificationChallengeDoc.from_mongo(doc)

    async def count_active(self, email: str, now: datetime) -> int:
        """Count unconsumed, unexpired challenges for *email*."""
        return await self._col.count_documents(
            {"email": email, "consumed": False, "expires_at": {"$gt": now}}
        )

    async def increment_attempts(
        self, challenge_id: ObjectId, expected_attempts: int
    ) -> Optional[VerificationChallengeDoc]:
        """Increment attempt_count if it still equals *expected_attempts*.

        Returns the updated document, or None if the challenge changed
        (or disappeared) since it was read.
        """
        doc = await self._col.find_one_and_update(
            {
                "_id": challenge_id,
                "consumed": False,
                "attempt_count": expected_attempts,
            },
            {"$inc": {"attempt_count": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return VerificationChallengeDoc.from_mongo(doc)

    async def mark_consumed(
        self, challenge_id: ObjectId, expected_attempts: int, now: datetime
    ) -> Optional[VerificationChallengeDoc]:
        """Consume the challenge if attempt_count still equals *expected_attempts*.

        The successful attempt is counted like any other.
        """
        doc = await self._col.find_one_and_update(
            {
                "_id": challenge_id,
                "consumed": False,
                "attempt_count": expected_attempts,
            },
            {"$set": {"consumed": True, "consumed_at": now}, "$inc": {"attempt_count": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return VerificationChallengeDoc.from_mongo(doc)

    async def delete(self, challenge_id: ObjectId) -> bool:
        result = await self._col.delete_one({"_id": challenge_id})
        return result.deleted_count == 1

    async def delete_expired(self, now: datetime) -> int:
        result = await self._col.delete_many({"expires_at": {"$lt": now}})
        return result.deleted_count
