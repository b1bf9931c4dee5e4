"""
Shared test fixtures.

The repositories take pymongo AsyncCollections. Tests back them with
mongomock collections behind a thin adapter that awaits the handful of
methods the repositories call, so every query and index runs against
mongomock's engine instead of a mock.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone

import mongomock
import pytest

# AppSettings needs a MONGODB_URI even when nothing connects to it
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")

from config import VerificationSettings  # noqa: E402
from repositories.challenge_repository import ChallengeRepository  # noqa: E402
from repositories.user_repository import UserRepository  # noqa: E402
from services.verification_registry import VerificationRegistry  # noqa: E402

_AWAITED_METHODS = frozenset(
    {
        "create_index",
        "insert_one",
        "delete_many",
        "delete_one",
        "find_one",
        "find_one_and_update",
        "update_one",
        "count_documents",
    }
)


class AsyncMongomockCollection:
    """Awaitable facade over a mongomock collection.

    Each awaited call first yields to the event loop, as a network round trip
    would, so coroutines run with asyncio.gather interleave between queries.
    """

    def __init__(self, collection: mongomock.Collection) -> None:
        self.sync = collection

    def __getattr__(self, name):
        attr = getattr(self.sync, name)
        if name not in _AWAITED_METHODS:
            return attr

        async def _call(*args, **kwargs):
            await asyncio.sleep(0)
            return attr(*args, **kwargs)

        return _call


class MutableClock:
    """Injectable clock; starts at real now so mongomock's TTL index stays idle."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient(tz_aware=True).db


@pytest.fixture
def challenges_collection(mongo_db):
    return AsyncMongomockCollection(mongo_db["email-verifications"])


@pytest.fixture
def users_collection(mongo_db):
    return AsyncMongomockCollection(mongo_db["users"])


@pytest.fixture
async def challenge_repo(challenges_collection):
    repo = ChallengeRepository(challenges_collection)
    await repo.ensure_indexes()
    return repo


@pytest.fixture
def user_repo(users_collection):
    return UserRepository(users_collection)


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def verification_settings():
    return VerificationSettings(
        ttl_seconds=900,
        max_attempts=5,
        code_length=6,
        token_bytes=32,
        reaper_interval_seconds=0,
    )


@pytest.fixture
def registry(challenge_repo, verification_settings, clock):
    return VerificationRegistry(challenge_repo, verification_settings, clock=clock)
