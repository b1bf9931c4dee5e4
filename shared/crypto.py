"""
Cryptographic helpers: token hashing and constant-time comparison.

Verification tokens and codes are stored as SHA-256 digests; the plaintext
only ever exists in the email and in the issuing response.
"""

from __future__ import annotations

import hashlib
import hmac


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Args:
        token: The plaintext token or code to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def matches_hash(plain_value: str, expected_hash: str) -> bool:
    """Return True if ``hash_token(plain_value)`` equals *expected_hash*.

    Uses ``hmac.compare_digest`` so the comparison time does not depend on
    how many leading characters match.
    """
    return hmac.compare_digest(hash_token(plain_value), expected_hash)
