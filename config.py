"""
Settings for the verification service, read by pydantic-settings from the
environment and an optional .env file.

Verification constants (TTL, attempt budget, code length) live in
VerificationSettings so that the registry never reads the environment itself;
create_app() hands the loaded object to everything that needs it.

Logging is not configured here: utils/logging_config.py reads ENV, LOG_LEVEL,
LOG_FORMAT and SAMPLE_RATE_STATUS_POLL when it is first imported.
"""

from __future__ import annotations

from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "nextmind"


class VerificationSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="VERIFICATION_", extra="ignore"
    )

    ttl_seconds: int = Field(default=900, gt=0)  # 15 minutes
    max_attempts: int = Field(default=5, gt=0)
    code_length: int = Field(default=6, ge=4, le=10)
    token_bytes: int = Field(default=32, ge=32)

    # 0 disables the background sweep (the TTL index still reaps passively)
    reaper_interval_seconds: int = Field(default=300, ge=0)


class RateLimitSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ratelimit_enabled: bool = True
    # Any storage URI understood by `limits`: memory://, mongodb://, redis://
    ratelimit_storage_uri: str = "memory://"

    rate_limit_send: str = "3/5minutes"
    rate_limit_verify: str = "5/15minutes"


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@nextmind-ai.com"
    zepto_from_name: str = "NextMind AI"


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "NextMind AI"

    # Front-end origin used to build the link inside verification emails
    client_url: str = "http://localhost:5173"

    # Shared secret for the cleanup endpoint; empty disables the endpoint
    admin_api_key: str = ""

    cors_origins: list[str] = ["*"]

    # None hides the OpenAPI UI
    docs_url: Optional[str] = "/docs"

    # Filled in by _populate_sub_configs when not passed explicitly
    db: Optional[DatabaseSettings] = None
    verification: Optional[VerificationSettings] = None
    rate_limit: Optional[RateLimitSettings] = None
    email: Optional[EmailSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Sub-configs read the same environment; explicit ones win
        for name, factory in _SUB_CONFIGS.items():
            if getattr(self, name) is None:
                setattr(self, name, factory())
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"


_SUB_CONFIGS = {
    "db": DatabaseSettings,
    "verification": VerificationSettings,
    "rate_limit": RateLimitSettings,
    "email": EmailSettings,
    "sentry": SentrySettings,
}
