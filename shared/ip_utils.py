"""
Client provenance resolution for FastAPI requests.

Takes an explicit ``Request`` parameter so the functions are testable without
a request context. Also used as the slowapi key function.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

_IP_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
    "X-Client-IP",
)

# User agents longer than this are truncated before storage
MAX_USER_AGENT_LENGTH = 512


def get_client_ip(request: Request) -> str:
    """Extract the real client IP from a FastAPI ``Request``.

    Checks proxy headers in priority order before falling back to the
    direct connection address:

    1. ``CF-Connecting-IP``: Cloudflare
    2. ``True-Client-IP``: Akamai and others
    3. ``X-Forwarded-For``: standard proxy header (first IP in list)
    4. ``X-Real-IP``: nginx / other reverse proxies
    5. ``X-Client-IP``: less common

    Returns:
        The resolved client IP string, or ``""`` if none can be found.
    """
    for header in _IP_HEADERS:
        ip_value: str | None = request.headers.get(header)
        if ip_value:
            client_ip: str = ip_value.split(",")[0].strip()
            if client_ip:
                return client_ip

    return request.client.host if request.client else ""


def get_user_agent(request: Request) -> Optional[str]:
    """Return the request's ``User-Agent`` header, truncated, or ``None``."""
    user_agent = request.headers.get("User-Agent")
    if not user_agent:
        return None
    return user_agent[:MAX_USER_AGENT_LENGTH]
