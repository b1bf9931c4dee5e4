"""
Result types returned by VerificationRegistry.verify().

A closed set: every verify call returns exactly one of the dataclasses in
VerificationOutcome, each carrying only the fields meaningful for that case.
Callers dispatch on the type (or on ``status``), never on message strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from bson import ObjectId


@dataclass(frozen=True)
class Verified:
    """The value matched; the challenge was consumed and deleted.

    ``account_id`` is what the caller needs to flip the account's
    verified flag; the registry never touches accounts itself.
    """

    status: ClassVar[str] = "verified"

    challenge_id: ObjectId
    email: str
    account_id: Optional[ObjectId] = None


@dataclass(frozen=True)
class Expired:
    """The challenge was past its deadline and has been deleted."""

    status: ClassVar[str] = "expired"

    email: str


@dataclass(frozen=True)
class AttemptsExhausted:
    """The attempt budget is spent; the challenge has been deleted."""

    status: ClassVar[str] = "attempts_exhausted"

    email: str


@dataclass(frozen=True)
class Mismatch:
    """Wrong value. The attempt was counted and the challenge is still live."""

    status: ClassVar[str] = "mismatch"

    email: str
    attempts_remaining: int


@dataclass(frozen=True)
class NotFoundOrConsumed:
    """No live challenge matched.

    Deliberately does not say whether it never existed, was already used,
    or was superseded.
    """

    status: ClassVar[str] = "not_found"


VerificationOutcome = Union[
    Verified, Expired, AttemptsExhausted, Mismatch, NotFoundOrConsumed
]
