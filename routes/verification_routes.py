"""
Email verification endpoints.

POST   /api/email-verification/send          issue a challenge and email it
POST   /api/email-verification/resend        supersede the live challenge
POST   /api/email-verification/verify        consume by token or (email, code)
GET    /api/email-verification/status/{t}    read-only status for UI polling
DELETE /api/email-verification/cleanup       reap expired challenges (admin)

The registry returns an outcome value for every verify attempt; this module
is the only place those outcomes become HTTP responses. Unknown, consumed,
superseded and wrong values share one response so callers cannot test
which one they hit.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from config import AppSettings
from dependencies import get_settings, get_verification_service
from errors import (
    ForbiddenError,
    InvalidVerificationError,
    RateLimitError,
    VerificationExpiredError,
)
from routes.limiter import limiter, send_limit, verify_limit
from schemas.dto.requests.verification import (
    ResendVerificationRequest,
    SendVerificationRequest,
    VerifyEmailRequest,
)
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.verification import (
    CleanupResponse,
    SendVerificationResponse,
    VerificationDebug,
    VerificationStatusResponse,
    VerifiedUser,
    VerifyEmailResponse,
)
from schemas.models.challenge import RequestOrigin
from services.verification_outcomes import AttemptsExhausted, Expired, Verified
from services.verification_service import (
    DispatchResult,
    VerificationService,
    parse_account_id,
)
from shared.ip_utils import get_client_ip, get_user_agent

router = APIRouter(
    prefix="/api/email-verification",
    tags=["email-verification"],
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)

INVALID_MESSAGE = "Invalid or expired verification token/code"
EXPIRED_MESSAGE = "Verification code has expired. Please request a new one."
EXHAUSTED_MESSAGE = (
    "Too many verification attempts. Please request a new verification email."
)


def _origin(request: Request) -> RequestOrigin:
    return RequestOrigin(ip=get_client_ip(request), user_agent=get_user_agent(request))


def _dispatch_response(
    result: DispatchResult, message: str, settings: AppSettings
) -> SendVerificationResponse:
    debug = None
    if not settings.is_production:
        debug = VerificationDebug(code=result.issued.code, token=result.issued.token)
    return SendVerificationResponse(
        message=message,
        email=result.issued.email,
        expires_at=result.issued.expires_at,
        email_sent=result.email_sent,
        debug=debug,
    )


@router.post(
    "/send", response_model=SendVerificationResponse, response_model_exclude_none=True
)
@limiter.limit(send_limit)
async def send_verification(
    request: Request,
    body: SendVerificationRequest,
    service: VerificationService = Depends(get_verification_service),
    settings: AppSettings = Depends(get_settings),
) -> SendVerificationResponse:
    account_id = parse_account_id(body.user_id)
    result = await service.request_verification(
        body.email, account_id=account_id, origin=_origin(request)
    )
    return _dispatch_response(result, "Verification email sent successfully", settings)


@router.post(
    "/resend", response_model=SendVerificationResponse, response_model_exclude_none=True
)
@limiter.limit(send_limit)
async def resend_verification(
    request: Request,
    body: ResendVerificationRequest,
    service: VerificationService = Depends(get_verification_service),
    settings: AppSettings = Depends(get_settings),
) -> SendVerificationResponse:
    result = await service.resend_verification(body.email, origin=_origin(request))
    return _dispatch_response(
        result, "Verification email resent successfully", settings
    )


@router.post("/verify", response_model=VerifyEmailResponse)
@limiter.limit(verify_limit)
async def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    service: VerificationService = Depends(get_verification_service),
) -> VerifyEmailResponse:
    result = await service.confirm(token=body.token, code=body.code, email=body.email)
    outcome = result.outcome

    if isinstance(outcome, Verified):
        user = None
        if result.user is not None:
            user = VerifiedUser(
                id=str(result.user.id), name=result.user.name, email=result.user.email
            )
        return VerifyEmailResponse(
            message="Email verified successfully!", email=outcome.email, user=user
        )
    if isinstance(outcome, Expired):
        raise VerificationExpiredError(EXPIRED_MESSAGE)
    if isinstance(outcome, AttemptsExhausted):
        raise RateLimitError(EXHAUSTED_MESSAGE)
    # Mismatch and NotFoundOrConsumed
    raise InvalidVerificationError(INVALID_MESSAGE)


@router.get("/status/{token}", response_model=VerificationStatusResponse)
async def verification_status(
    token: str,
    service: VerificationService = Depends(get_verification_service),
) -> VerificationStatusResponse:
    status = await service.status(token)
    return VerificationStatusResponse(
        email=status.email,
        verified=status.verified,
        expired=status.expired,
        attempts=status.attempt_count,
        max_attempts=status.max_attempts,
        expires_at=status.expires_at,
        created_at=status.created_at,
    )


@router.delete("/cleanup", response_model=CleanupResponse)
async def cleanup_expired(
    x_admin_key: Optional[str] = Header(default=None),
    service: VerificationService = Depends(get_verification_service),
    settings: AppSettings = Depends(get_settings),
) -> CleanupResponse:
    expected = settings.admin_api_key
    if not expected or not x_admin_key or not hmac.compare_digest(
        x_admin_key.encode(), expected.encode()
    ):
        raise ForbiddenError("Admin key required")

    deleted = await service.cleanup()
    return CleanupResponse(
        message=f"Cleaned up {deleted} expired verification records",
        deleted_count=deleted,
    )
