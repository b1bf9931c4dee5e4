"""
Email verification registry: the lifecycle of verification challenges.

issue()             supersede any live challenge for the address and create
                    a fresh token + code pair
lookup_*()          find a live (unconsumed) challenge
verify()            run one attempt through the state machine
status_by_token()   read-only view for UI polling
reap_expired()      bulk-delete challenges past their deadline

verify() state machine, checked in this order on every call:

    gone / consumed                  -> NotFoundOrConsumed
    now > expires_at                 -> delete, Expired
    attempt_count >= max_attempts    -> delete, AttemptsExhausted
    value matches                    -> consume (attempt counted), delete, Verified
    value does not match             -> attempt_count += 1, Mismatch
                                        (AttemptsExhausted + delete when the
                                        increment spends the last attempt)

Transitions are compare-and-swap updates keyed on the attempt count that was
read; a lost race re-reads the challenge and runs the checks again.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from bson import ObjectId

from config import VerificationSettings
from errors import ValidationError
from repositories.challenge_repository import ChallengeRepository
from schemas.models.challenge import RequestOrigin, VerificationChallengeDoc
from services.verification_outcomes import (
    AttemptsExhausted,
    Expired,
    Mismatch,
    NotFoundOrConsumed,
    Verified,
    VerificationOutcome,
)
from shared.crypto import hash_token, matches_hash
from shared.datetime_utils import utc_now
from shared.generators import generate_secure_token, generate_verification_code
from shared.logging import get_logger, hash_ip, should_sample
from shared.validators import normalize_email, validate_email

log = get_logger(__name__)


@dataclass(frozen=True)
class IssuedChallenge:
    """A freshly stored challenge plus the plaintext values to dispatch.

    The plaintext token and code are never persisted; this object is the
    only place they exist after issue() returns.
    """

    challenge: VerificationChallengeDoc
    token: str
    code: str

    @property
    def email(self) -> str:
        return self.challenge.email

    @property
    def expires_at(self) -> datetime:
        return self.challenge.expires_at


@dataclass(frozen=True)
class ChallengeStatus:
    email: str
    verified: bool
    expired: bool
    attempt_count: int
    max_attempts: int
    expires_at: datetime
    created_at: datetime


class VerificationRegistry:
    """Owns every state transition of email-verification challenges.

    Built once at startup and shared by all request handlers. ``clock`` is
    injectable so expiry can be tested without sleeping.
    """

    def __init__(
        self,
        repository: ChallengeRepository,
        settings: VerificationSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo = repository
        self._settings = settings
        self._clock = clock

    @property
    def max_attempts(self) -> int:
        return self._settings.max_attempts

    @property
    def code_length(self) -> int:
        return self._settings.code_length

    async def issue(
        self,
        email: str,
        account_id: Optional[ObjectId] = None,
        origin: Optional[RequestOrigin] = None,
    ) -> IssuedChallenge:
        """Create a new challenge for *email*, superseding any live one.

        Raises:
            ValidationError: if *email* is not a syntactically valid address.
        """
        if not email or not validate_email(email):
            raise ValidationError("Valid email address is required", field="email")
        email = normalize_email(email)

        token = generate_secure_token(self._settings.token_bytes)
        code = generate_verification_code(self._settings.code_length)
        now = self._clock()

        challenge = VerificationChallengeDoc(
            email=email,
            token_hash=hash_token(token),
            code_hash=hash_token(code),
            account_id=account_id,
            created_at=now,
            expires_at=now + timedelta(seconds=self._settings.ttl_seconds),
            request_origin=origin or RequestOrigin(),
        )
        challenge.id = await self._repo.replace_active(challenge)

        log.info(
            "verification_challenge_issued",
            challenge_id=str(challenge.id),
            email=email,
            has_account=account_id is not None,
            ip=hash_ip(challenge.request_origin.ip),
            expires_at=challenge.expires_at.isoformat(),
        )
        return IssuedChallenge(challenge=challenge, token=token, code=code)

    async def lookup_by_token(self, token: str) -> Optional[VerificationChallengeDoc]:
        if not token:
            return None
        return await self._repo.find_unconsumed_by_token_hash(hash_token(token))

    async def lookup_by_code_and_email(
        self, code: str, email: str
    ) -> Optional[VerificationChallengeDoc]:
        if not code or not email:
            return None
        return await self._repo.find_unconsumed_by_code_hash(
            hash_token(code), normalize_email(email)
        )

    async def lookup_active_by_email(
        self, email: str
    ) -> Optional[VerificationChallengeDoc]:
        """Return the live challenge for *email*, whatever its code."""
        if not email:
            return None
        return await self._repo.find_unconsumed_by_email(normalize_email(email))

    async def verify(
        self, challenge: VerificationChallengeDoc, used_value: str
    ) -> VerificationOutcome:
        """Run one verification attempt of *used_value* against *challenge*.

        *used_value* may be either the challenge's token or its code. The
        challenge is re-read from storage, so a stale object is safe to pass.
        """
        max_attempts = self._settings.max_attempts

        # Every lost compare-and-swap means another attempt was counted, so
        # the loop reaches a terminal state within max_attempts + 1 passes.
        for _ in range(max_attempts + 1):
            current = await self._repo.find_unconsumed_by_id(challenge.id)
            if current is None:
                log.warning(
                    "verification_failed",
                    challenge_id=str(challenge.id),
                    reason="not_found",
                )
                return NotFoundOrConsumed()

            now = self._clock()
            if current.is_expired(now):
                await self._repo.delete(current.id)
                log.warning(
                    "verification_failed",
                    challenge_id=str(current.id),
                    reason="expired",
                )
                return Expired(email=current.email)

            if current.attempt_count >= max_attempts:
                await self._repo.delete(current.id)
                log.warning(
                    "verification_failed",
                    challenge_id=str(current.id),
                    reason="max_attempts",
                )
                return AttemptsExhausted(email=current.email)

            token_ok = matches_hash(used_value, current.token_hash)
            code_ok = matches_hash(used_value, current.code_hash)

            if token_ok or code_ok:
                consumed = await self._repo.mark_consumed(
                    current.id, current.attempt_count, now
                )
                if consumed is None:
                    continue
                await self._repo.delete(current.id)
                log.info(
                    "verification_succeeded",
                    challenge_id=str(current.id),
                    method="token" if token_ok else "code",
                    attempts=consumed.attempt_count,
                )
                return Verified(
                    challenge_id=current.id,
                    email=current.email,
                    account_id=current.account_id,
                )

            updated = await self._repo.increment_attempts(
                current.id, current.attempt_count
            )
            if updated is None:
                continue

            if updated.attempt_count >= max_attempts:
                await self._repo.delete(updated.id)
                log.warning(
                    "verification_failed",
                    challenge_id=str(updated.id),
                    reason="max_attempts",
                    attempts=updated.attempt_count,
                )
                return AttemptsExhausted(email=updated.email)

            log.warning(
                "verification_failed",
                challenge_id=str(updated.id),
                reason="mismatch",
                attempts=updated.attempt_count,
            )
            return Mismatch(
                email=updated.email,
                attempts_remaining=max_attempts - updated.attempt_count,
            )

        log.error("verification_contention", challenge_id=str(challenge.id))
        return NotFoundOrConsumed()

    async def verify_token(self, token: str) -> VerificationOutcome:
        """Link-based verification: look the challenge up by its token."""
        challenge = await self.lookup_by_token(token)
        if challenge is None:
            log.warning("verification_failed", reason="not_found", method="token")
            return NotFoundOrConsumed()
        return await self.verify(challenge, token)

    async def verify_code(self, email: str, code: str) -> VerificationOutcome:
        """Manual-entry verification.

        The code is checked against the address's live challenge, so wrong
        guesses spend that challenge's attempt budget.
        """
        challenge = await self.lookup_active_by_email(email)
        if challenge is None:
            log.warning("verification_failed", reason="not_found", method="code")
            return NotFoundOrConsumed()
        return await self.verify(challenge, code)

    async def status_by_token(self, token: str) -> Optional[ChallengeStatus]:
        """Read-only status; does not count as an attempt."""
        if not token:
            return None
        challenge = await self._repo.find_by_token_hash(hash_token(token))
        if challenge is None:
            return None

        now = self._clock()
        if should_sample("verification_status_poll"):
            log.info(
                "verification_status_poll",
                challenge_id=str(challenge.id),
                attempts=challenge.attempt_count,
            )
        return ChallengeStatus(
            email=challenge.email,
            verified=challenge.consumed,
            expired=challenge.is_expired(now),
            attempt_count=challenge.attempt_count,
            max_attempts=self._settings.max_attempts,
            expires_at=challenge.expires_at,
            created_at=challenge.created_at,
        )

    async def count_active(self, email: str) -> int:
        """Number of live (unconsumed, unexpired) challenges for *email*."""
        return await self._repo.count_active(normalize_email(email), self._clock())

    async def reap_expired(self) -> int:
        """Delete every challenge past its deadline. Returns the count removed."""
        deleted = await self._repo.delete_expired(self._clock())
        if deleted:
            log.info("verification_challenges_reaped", count=deleted)
        return deleted
