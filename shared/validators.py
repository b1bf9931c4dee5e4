"""
Input validators. Framework-agnostic, pure functions.
"""

from __future__ import annotations

import re

import validators as _validators

_CODE_RE = re.compile(r"^\d+$")


def normalize_email(email: str) -> str:
    """Return *email* trimmed and lowercased (the stored form)."""
    return email.strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* is a syntactically valid address.

    Only the format is checked; deliverability is proven by the verification
    flow itself.
    """
    if not email:
        return False
    return bool(_validators.email(normalize_email(email)))


def validate_verification_code(code: str, length: int = 6) -> bool:
    """Return True if *code* is exactly *length* decimal digits."""
    return len(code) == length and bool(_CODE_RE.match(code))
