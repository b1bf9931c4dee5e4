"""
Structured logging setup (structlog over the stdlib logging module).

Configured from the environment at import time:

    ENV                      production -> JSON lines, INFO; otherwise console, DEBUG
    LOG_LEVEL / LOG_FORMAT   explicit overrides
    SAMPLE_RATE_STATUS_POLL  fraction of status-poll events that are logged

Verification secrets never reach a log line: the redaction processor masks
any field whose name looks like a token, code, key or secret. Client IPs are
hashed in production.
"""

import hashlib
import logging
import os
import sys

import structlog
from structlog.types import EventDict, Processor

ENV = os.getenv("ENV", "development")
IS_PRODUCTION = ENV == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if IS_PRODUCTION else "console")

# Events not listed here are always logged
SAMPLING_RATES = {
    # Verification pages poll /status every few seconds while open
    "verification_status_poll": float(os.getenv("SAMPLE_RATE_STATUS_POLL", "0.10")),
}

REDACTED_FIELDS = frozenset(
    {
        "code",
        "code_hash",
        "otp_code",
        "authorization",
        "cookie",
    }
)
_REDACTED_FRAGMENTS = ("token", "secret", "key")
_REDACTED_VALUE = "***REDACTED***"
_STRUCTLOG_KEYS = frozenset({"event", "level", "logger", "timestamp"})

_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "pymongo")


def hash_ip(ip_address: str) -> str:
    """Truncated SHA-256 of *ip_address* in production, the raw value elsewhere."""
    if IS_PRODUCTION and ip_address:
        return hashlib.sha256(ip_address.encode()).hexdigest()[:16]
    return ip_address


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """structlog processor masking tokens, codes and secrets."""
    for field in list(event_dict):
        if field in _STRUCTLOG_KEYS:
            continue
        lowered = field.lower()
        if lowered in REDACTED_FIELDS or any(
            fragment in lowered for fragment in _REDACTED_FRAGMENTS
        ):
            event_dict[field] = _REDACTED_VALUE
    return event_dict


def _renderer() -> Processor:
    if LOG_FORMAT == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty(), pad_event=15)


def configure_structlog() -> None:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
        _renderer(),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging() -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging() -> None:
    """Configure stdlib logging and structlog. Runs once, on import."""
    configure_stdlib_logging()
    configure_structlog()
    structlog.get_logger(__name__).info(
        "logging_initialized",
        env=ENV,
        log_level=LOG_LEVEL,
        log_format=LOG_FORMAT,
        sentry_enabled=bool(os.getenv("SENTRY_DSN")),
    )


setup_logging()
