"""
Verification flow as seen by the HTTP layer.

Wraps VerificationRegistry with the collaborators around it: the user
directory (already-verified check, display names, flipping the verified flag)
and the email provider (verification and welcome emails). Delivery failures
are logged and reported, never raised; the stored challenge is the source of
truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from bson import ObjectId

from errors import ConflictError, NotFoundError, ValidationError
from infrastructure.email.protocol import EmailProvider
from repositories.user_repository import UserRepository
from schemas.models.challenge import RequestOrigin
from schemas.models.user import UserDoc
from services.verification_outcomes import Verified, VerificationOutcome
from services.verification_registry import (
    ChallengeStatus,
    IssuedChallenge,
    VerificationRegistry,
)
from shared.datetime_utils import utc_now
from shared.logging import get_logger
from shared.validators import (
    normalize_email,
    validate_email,
    validate_verification_code,
)

log = get_logger(__name__)


@dataclass(frozen=True)
class DispatchResult:
    issued: IssuedChallenge
    email_sent: bool


@dataclass(frozen=True)
class ConfirmResult:
    outcome: VerificationOutcome
    user: Optional[UserDoc] = None


def parse_account_id(value: Optional[str]) -> Optional[ObjectId]:
    """Parse an optional account id from a request body."""
    if not value:
        return None
    if not ObjectId.is_valid(value):
        raise ValidationError("Invalid user id", field="user_id")
    return ObjectId(value)


class VerificationService:
    def __init__(
        self,
        registry: VerificationRegistry,
        users: UserRepository,
        email_provider: EmailProvider,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._users = users
        self._email = email_provider
        self._clock = clock

    async def request_verification(
        self,
        email: str,
        account_id: Optional[ObjectId] = None,
        origin: Optional[RequestOrigin] = None,
    ) -> DispatchResult:
        """Issue a challenge for *email* and send it.

        Raises:
            ValidationError: malformed address.
            ConflictError: the address already belongs to a verified account.
        """
        email = self._require_email(email)
        existing = await self._users.find_by_email(email)
        if existing is not None and existing.email_verified:
            raise ConflictError("Email address is already verified", field="email")

        user_name: Optional[str] = None
        if account_id is not None:
            account = await self._users.find_by_id(account_id)
            user_name = account.name if account else None

        return await self._issue_and_send(email, account_id, user_name, origin)

    async def resend_verification(
        self, email: str, origin: Optional[RequestOrigin] = None
    ) -> DispatchResult:
        """Issue a fresh challenge, invalidating the previous one.

        The associated account is resolved from the user directory by email.
        """
        email = self._require_email(email)
        existing = await self._users.find_by_email(email)
        if existing is not None and existing.email_verified:
            raise ConflictError("Email address is already verified", field="email")

        account_id = existing.id if existing else None
        user_name = existing.name if existing else None
        return await self._issue_and_send(email, account_id, user_name, origin)

    async def confirm(
        self,
        token: Optional[str] = None,
        code: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ConfirmResult:
        """Consume a challenge by token, or by (email, code).

        On success the associated account (if any) is marked verified and
        greeted with the welcome email.
        """
        if not token and not code:
            raise ValidationError("Verification token or code is required")

        if token:
            outcome = await self._registry.verify_token(token)
        else:
            if not email:
                raise ValidationError(
                    "Email is required when verifying with a code", field="email"
                )
            if not validate_verification_code(code, self._registry.code_length):
                raise ValidationError("Invalid verification code format", field="code")
            outcome = await self._registry.verify_code(email, code)

        if not isinstance(outcome, Verified) or outcome.account_id is None:
            return ConfirmResult(outcome=outcome)

        user = await self._activate_account(outcome)
        return ConfirmResult(outcome=outcome, user=user)

    async def status(self, token: str) -> ChallengeStatus:
        status = await self._registry.status_by_token(token)
        if status is None:
            raise NotFoundError("Verification record not found")
        return status

    async def cleanup(self) -> int:
        return await self._registry.reap_expired()

    def _require_email(self, email: str) -> str:
        if not email or not validate_email(email):
            raise ValidationError("Valid email address is required", field="email")
        return normalize_email(email)

    async def _issue_and_send(
        self,
        email: str,
        account_id: Optional[ObjectId],
        user_name: Optional[str],
        origin: Optional[RequestOrigin],
    ) -> DispatchResult:
        issued = await self._registry.issue(email, account_id=account_id, origin=origin)
        sent = await self._email.send_verification_email(
            issued.email, user_name, issued.token, issued.code
        )
        if not sent:
            log.warning(
                "verification_email_not_sent",
                challenge_id=str(issued.challenge.id),
                email=issued.email,
            )
        return DispatchResult(issued=issued, email_sent=sent)

    async def _activate_account(self, outcome: Verified) -> Optional[UserDoc]:
        updated = await self._users.mark_email_verified(
            outcome.account_id, self._clock()
        )
        if not updated:
            log.warning(
                "verified_account_missing", account_id=str(outcome.account_id)
            )
            return None

        log.info("account_email_verified", account_id=str(outcome.account_id))
        user = await self._users.find_by_id(outcome.account_id)
        if user is not None:
            welcomed = await self._email.send_welcome_email(user.email, user.name)
            if not welcomed:
                log.warning(
                    "welcome_email_not_sent", account_id=str(outcome.account_id)
                )
        return user
