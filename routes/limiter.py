"""
Rate limiting for the verification endpoints (slowapi).

Limits are keyed on the client IP, resolved through the same proxy headers
as everywhere else. Storage defaults to in-memory; point
RATELIMIT_STORAGE_URI at MongoDB or Redis when running several workers.

Routes pass send_limit / verify_limit as callables, so slowapi reads the
limit strings per request and create_app() can swap in its own
RateLimitSettings through configure_limiter(). The storage backend is bound
when the limiter is built, at import.
"""

from slowapi import Limiter

from config import RateLimitSettings
from shared.ip_utils import get_client_ip
from shared.logging import get_logger

log = get_logger(__name__)

_settings = RateLimitSettings()

limiter = Limiter(
    key_func=get_client_ip,
    enabled=_settings.ratelimit_enabled,
    storage_uri=_settings.ratelimit_storage_uri,
    strategy="fixed-window",
)
_bound_storage_uri = _settings.ratelimit_storage_uri


def send_limit() -> str:
    return _settings.rate_limit_send


def verify_limit() -> str:
    return _settings.rate_limit_verify


def configure_limiter(settings: RateLimitSettings) -> None:
    """Apply *settings* to the shared limiter."""
    global _settings
    _settings = settings
    limiter.enabled = settings.ratelimit_enabled
    if settings.ratelimit_storage_uri != _bound_storage_uri:
        # Storage comes from the environment at import
        log.warning("ratelimit_storage_unchanged")
