"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.asynchronous.mongo_client import AsyncMongoClient

from config import AppSettings
from errors import register_error_handlers
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient
from repositories.challenge_repository import ChallengeRepository
from repositories.user_repository import UserRepository
from routes.health_routes import router as health_router
from routes.limiter import configure_limiter, limiter
from routes.verification_routes import router as verification_router
from schemas.models.challenge import CHALLENGES_COLLECTION
from schemas.models.user import USERS_COLLECTION
from services.verification_registry import VerificationRegistry
from services.verification_service import VerificationService
from shared.logging import get_logger
from workers.challenge_reaper import ChallengeReaper

log = get_logger(__name__)


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if settings is None:
        settings = AppSettings()

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        mongo_client: AsyncMongoClient = AsyncMongoClient(
            settings.db.mongodb_uri, tz_aware=True
        )
        db = mongo_client[settings.db.db_name]
        app.state.mongo_client = mongo_client
        app.state.db = db
        app.state.settings = settings

        challenges = ChallengeRepository(db[CHALLENGES_COLLECTION])
        await challenges.ensure_indexes()
        users = UserRepository(db[USERS_COLLECTION])

        registry = VerificationRegistry(challenges, settings.verification)
        app.state.verification_registry = registry

        email_http = HttpClient(
            timeout=10.0, user_agent=f"{settings.app_name} verification"
        )
        email_provider = ZeptoMailProvider(
            settings.email,
            email_http,
            client_url=settings.client_url,
            app_name=settings.app_name,
            ttl_minutes=settings.verification.ttl_seconds // 60,
        )
        app.state.verification_service = VerificationService(
            registry, users, email_provider
        )

        reaper: Optional[ChallengeReaper] = None
        if settings.verification.reaper_interval_seconds > 0:
            reaper = ChallengeReaper(
                registry,
                interval_seconds=settings.verification.reaper_interval_seconds,
            )
            reaper.start()
        app.state.challenge_reaper = reaper

        log.info("app_started", env=settings.env, db=settings.db.db_name)

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        if reaper is not None:
            await reaper.stop()
        await email_http.aclose()
        await mongo_client.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    configure_limiter(settings.rate_limit)
    # slowapi looks the limiter up on app.state
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(health_router)
    app.include_router(verification_router)

    return app
