"""
Logger factory and the small helpers that go with it.

get_logger()     structlog logger bound to a module name
should_sample()  probabilistic gate for high-frequency events
hash_ip()        privacy-preserving form of a client IP for log fields
"""

import random
from typing import Optional

import structlog
from structlog.stdlib import BoundLogger

from .logging_config import SAMPLING_RATES, hash_ip as _hash_ip


def get_logger(name: str) -> BoundLogger:
    """
    Return a structlog logger for *name*.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("verification_challenge_issued", challenge_id="66f1...")
    """
    return structlog.get_logger(name)


def should_sample(event_type: str) -> bool:
    """Return True if this occurrence of *event_type* should be logged."""
    rate = SAMPLING_RATES.get(event_type, 1.0)
    if rate >= 1.0:
        return True
    if rate <= 0.0:
        return False
    return random.random() < rate


def hash_ip(ip_address: Optional[str]) -> Optional[str]:
    """None-tolerant wrapper around logging_config.hash_ip()."""
    if ip_address is None:
        return None
    return _hash_ip(ip_address)
