"""
Random token and code generators.

Everything here draws from the ``secrets`` module; verification tokens and
codes must never come from the system PRNG.
"""

from __future__ import annotations

import secrets


def generate_verification_code(length: int = 6) -> str:
    """Generate a numeric verification code without a leading zero.

    The code is drawn uniformly from ``10**(length-1)`` to ``10**length - 1``,
    i.e. 100000–999999 for the default length.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of *length* decimal digits.
    """
    low = 10 ** (length - 1)
    high = 10**length
    return str(low + secrets.randbelow(high - low))


def generate_secure_token(num_bytes: int = 32) -> str:
    """Generate a cryptographically secure hex token.

    Args:
        num_bytes: Number of random bytes (default 32). The resulting
            string is ``2 * num_bytes`` characters long.

    Returns:
        Lowercase hex string, safe to embed in a URL query string.
    """
    return secrets.token_hex(num_bytes)
