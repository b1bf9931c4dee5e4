"""
GET /health: liveness of the verification service.

MongoDB is the only hard dependency; when its ping fails the service reports
"unhealthy" with a 503. The reaper is informational ("running" or "off").
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


async def _mongo_reachable(request: Request) -> bool:
    try:
        await request.app.state.db.client.admin.command("ping")
    except Exception as exc:
        log.error("health_check_mongodb_failed", error=str(exc))
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    mongo_ok = await _mongo_reachable(request)
    reaper = getattr(request.app.state, "challenge_reaper", None)

    body = {
        "status": "healthy" if mongo_ok else "unhealthy",
        "checks": {
            "mongodb": "ok" if mongo_ok else "error",
            "reaper": "running" if reaper is not None and reaper.is_running else "off",
        },
    }
    return JSONResponse(status_code=200 if mongo_ok else 503, content=body)
