"""Integration tests for the /api/email-verification endpoints.

The app is assembled the way create_app() does it, with mongomock-backed
repositories and a mocked email provider. No network connections are made.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app import create_app
from config import AppSettings, RateLimitSettings, VerificationSettings
from errors import register_error_handlers
from repositories.challenge_repository import ChallengeRepository
from repositories.user_repository import UserRepository
from routes.limiter import configure_limiter, limiter
from routes.verification_routes import router as verification_router
from services.verification_registry import VerificationRegistry
from services.verification_service import VerificationService

BASE = "/api/email-verification"
ADMIN_KEY = "admin-secret"


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    configure_limiter(RateLimitSettings())
    limiter.reset()


@pytest.fixture
def email_provider():
    provider = AsyncMock()
    provider.send_verification_email.return_value = True
    provider.send_welcome_email.return_value = True
    return provider


@pytest.fixture
def settings():
    return AppSettings(
        env="development",
        admin_api_key=ADMIN_KEY,
        verification=VerificationSettings(reaper_interval_seconds=0),
    )


@pytest.fixture
def build_app(challenges_collection, users_collection, email_provider, clock):
    def _build(settings: AppSettings) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            challenges = ChallengeRepository(challenges_collection)
            await challenges.ensure_indexes()
            registry = VerificationRegistry(
                challenges, settings.verification, clock=clock
            )
            app.state.settings = settings
            app.state.db = MagicMock()
            app.state.verification_registry = registry
            app.state.verification_service = VerificationService(
                registry, UserRepository(users_collection), email_provider, clock=clock
            )
            yield

        app = FastAPI(lifespan=lifespan)
        configure_limiter(settings.rate_limit)
        app.state.limiter = limiter
        register_error_handlers(app)
        app.include_router(verification_router)
        return app

    return _build


@pytest.fixture
def client(build_app, settings):
    with TestClient(build_app(settings)) as c:
        yield c


def _send(client, email="user@example.com", **extra):
    resp = client.post(f"{BASE}/send", json={"email": email, **extra})
    assert resp.status_code == 200, resp.text
    return resp.json()


# ── POST /send ────────────────────────────────────────────────────────────────


class TestSend:
    def test_success(self, client, email_provider):
        body = _send(client, "User@Example.com")

        assert body["message"] == "Verification email sent successfully"
        assert body["email"] == "user@example.com"
        assert body["email_sent"] is True
        assert "expires_at" in body
        assert len(body["debug"]["code"]) == 6
        assert len(body["debug"]["token"]) == 64
        email_provider.send_verification_email.assert_awaited_once()

    def test_debug_hidden_in_production(self, build_app, settings):
        settings.env = "production"
        with TestClient(build_app(settings)) as client:
            body = _send(client)
        assert "debug" not in body

    def test_delivery_failure_reported(self, client, email_provider):
        email_provider.send_verification_email.return_value = False
        body = _send(client)
        assert body["email_sent"] is False

    def test_links_account(self, client, users_collection, challenges_collection):
        user_id = ObjectId()
        users_collection.sync.insert_one({"_id": user_id, "email": "user@example.com"})
        _send(client, userId=str(user_id))
        stored = challenges_collection.sync.find_one({"email": "user@example.com"})
        assert stored["account_id"] == user_id

    def test_records_origin(self, client, challenges_collection):
        client.post(
            f"{BASE}/send",
            json={"email": "user@example.com"},
            headers={"X-Forwarded-For": "203.0.113.9", "User-Agent": "route-test"},
        )
        stored = challenges_collection.sync.find_one({"email": "user@example.com"})
        assert stored["request_origin"] == {"ip": "203.0.113.9", "user_agent": "route-test"}

    def test_invalid_email(self, client):
        resp = client.post(f"{BASE}/send", json={"email": "nope"})
        assert resp.status_code == 400
        assert resp.json()["field"] == "email"

    def test_missing_email(self, client):
        resp = client.post(f"{BASE}/send", json={})
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_invalid_user_id(self, client):
        resp = client.post(
            f"{BASE}/send", json={"email": "user@example.com", "userId": "xyz"}
        )
        assert resp.status_code == 400
        assert resp.json()["field"] == "user_id"

    def test_already_verified(self, client, users_collection):
        users_collection.sync.insert_one(
            {"_id": ObjectId(), "email": "user@example.com", "email_verified": True}
        )
        resp = client.post(f"{BASE}/send", json={"email": "user@example.com"})
        assert resp.status_code == 409
        assert resp.json()["code"] == "conflict"

    def test_rate_limited(self, client):
        for _ in range(3):
            _send(client)
        resp = client.post(f"{BASE}/send", json={"email": "user@example.com"})
        assert resp.status_code == 429
        assert resp.json()["code"] == "rate_limit_exceeded"


# ── POST /resend ──────────────────────────────────────────────────────────────


class TestResend:
    def test_supersedes_previous_code(self, client):
        first = _send(client)
        resp = client.post(f"{BASE}/resend", json={"email": "user@example.com"})
        assert resp.status_code == 200
        second = resp.json()
        assert second["message"] == "Verification email resent successfully"

        old = client.post(f"{BASE}/verify", json={"token": first["debug"]["token"]})
        assert old.status_code == 400

        new = client.post(f"{BASE}/verify", json={"token": second["debug"]["token"]})
        assert new.status_code == 200


# ── POST /verify ──────────────────────────────────────────────────────────────


class TestVerify:
    def test_by_token(self, client):
        sent = _send(client)
        resp = client.post(f"{BASE}/verify", json={"token": sent["debug"]["token"]})
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Email verified successfully!"
        assert body["email"] == "user@example.com"
        assert body["verified"] is True
        assert body["user"] is None

    def test_by_code_activates_account(self, client, users_collection, email_provider):
        user_id = ObjectId()
        users_collection.sync.insert_one(
            {"_id": user_id, "email": "user@example.com", "name": "Ada"}
        )
        sent = _send(client, userId=str(user_id))

        resp = client.post(
            f"{BASE}/verify",
            json={"code": sent["debug"]["code"], "email": "user@example.com"},
        )

        assert resp.status_code == 200
        assert resp.json()["user"] == {
            "id": str(user_id),
            "name": "Ada",
            "email": "user@example.com",
        }
        assert users_collection.sync.find_one({"_id": user_id})["email_verified"] is True
        email_provider.send_welcome_email.assert_awaited_once_with("user@example.com", "Ada")

    def test_reuse_is_rejected(self, client):
        sent = _send(client)
        payload = {"code": sent["debug"]["code"], "email": "user@example.com"}
        assert client.post(f"{BASE}/verify", json=payload).status_code == 200

        resp = client.post(f"{BASE}/verify", json=payload)
        assert resp.status_code == 400
        assert resp.json() == {
            "error": "Invalid or expired verification token/code",
            "code": "invalid_verification",
        }

    def test_wrong_and_unknown_look_identical(self, client):
        _send(client)
        wrong = client.post(
            f"{BASE}/verify", json={"code": "000000", "email": "user@example.com"}
        )
        unknown = client.post(f"{BASE}/verify", json={"token": "f" * 64})
        assert wrong.status_code == unknown.status_code == 400
        assert wrong.json() == unknown.json()

    def test_expired(self, client, clock):
        sent = _send(client)
        clock.advance(minutes=16)
        resp = client.post(f"{BASE}/verify", json={"token": sent["debug"]["token"]})
        assert resp.status_code == 400
        assert resp.json()["code"] == "verification_expired"

    def test_attempts_exhausted(self, client):
        sent = _send(client)
        wrong = {"code": "000000", "email": "user@example.com"}

        statuses = [client.post(f"{BASE}/verify", json=wrong).status_code for _ in range(5)]
        assert statuses == [400, 400, 400, 400, 429]

    def test_correct_code_after_exhaustion(self, client, monkeypatch):
        monkeypatch.setattr(limiter, "enabled", False)
        sent = _send(client)
        wrong = {"code": "000000", "email": "user@example.com"}
        for _ in range(5):
            client.post(f"{BASE}/verify", json=wrong)

        resp = client.post(
            f"{BASE}/verify",
            json={"code": sent["debug"]["code"], "email": "user@example.com"},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_verification"

    def test_requires_token_or_code(self, client):
        resp = client.post(f"{BASE}/verify", json={})
        assert resp.status_code == 400
        assert resp.json()["code"] == "validation_error"

    def test_code_requires_email(self, client):
        resp = client.post(f"{BASE}/verify", json={"code": "123456"})
        assert resp.status_code == 400
        assert resp.json()["field"] == "email"

    def test_bad_code_format(self, client):
        resp = client.post(
            f"{BASE}/verify", json={"code": "12ab", "email": "user@example.com"}
        )
        assert resp.status_code == 400
        assert resp.json()["field"] == "code"


# ── GET /status/{token} ───────────────────────────────────────────────────────


class TestStatus:
    def test_pending(self, client):
        sent = _send(client)
        resp = client.get(f"{BASE}/status/{sent['debug']['token']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["email"] == "user@example.com"
        assert body["verified"] is False
        assert body["expired"] is False
        assert body["attempts"] == 0
        assert body["max_attempts"] == 5

    def test_polling_does_not_spend_attempts(self, client):
        sent = _send(client)
        for _ in range(10):
            client.get(f"{BASE}/status/{sent['debug']['token']}")
        resp = client.post(f"{BASE}/verify", json={"token": sent["debug"]["token"]})
        assert resp.status_code == 200

    def test_unknown(self, client):
        resp = client.get(f"{BASE}/status/{'0' * 64}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Verification record not found"


# ── DELETE /cleanup ───────────────────────────────────────────────────────────


class TestCleanup:
    def test_reaps_expired(self, client, clock):
        _send(client, "a@example.com")
        _send(client, "b@example.com")
        clock.advance(minutes=30)

        resp = client.delete(f"{BASE}/cleanup", headers={"X-Admin-Key": ADMIN_KEY})

        assert resp.status_code == 200
        assert resp.json() == {
            "message": "Cleaned up 2 expired verification records",
            "deleted_count": 2,
        }

    def test_wrong_key(self, client):
        resp = client.delete(f"{BASE}/cleanup", headers={"X-Admin-Key": "nope"})
        assert resp.status_code == 403

    def test_missing_key(self, client):
        assert client.delete(f"{BASE}/cleanup").status_code == 403

    def test_disabled_without_configured_key(self, build_app, settings):
        settings.admin_api_key = ""
        with TestClient(build_app(settings)) as client:
            resp = client.delete(f"{BASE}/cleanup", headers={"X-Admin-Key": ""})
        assert resp.status_code == 403


# ── rate-limit settings ───────────────────────────────────────────────────────


class TestRateLimitSettings:
    def test_send_limit_from_app_settings(self, build_app, settings):
        settings.rate_limit = RateLimitSettings(rate_limit_send="1/5minutes")
        with TestClient(build_app(settings)) as client:
            _send(client)
            resp = client.post(f"{BASE}/send", json={"email": "user@example.com"})
        assert resp.status_code == 429

    def test_verify_limit_from_app_settings(self, build_app, settings):
        settings.rate_limit = RateLimitSettings(rate_limit_verify="2/15minutes")
        with TestClient(build_app(settings)) as client:
            _send(client)
            wrong = {"code": "000000", "email": "user@example.com"}
            statuses = [
                client.post(f"{BASE}/verify", json=wrong).status_code for _ in range(3)
            ]
        assert statuses == [400, 400, 429]

    def test_create_app_applies_enabled_flag(self, settings):
        settings.rate_limit = RateLimitSettings(ratelimit_enabled=False)
        create_app(settings)
        assert limiter.enabled is False
