"""
Background sweep for expired verification challenges.

Runs as an asyncio task started from the FastAPI lifespan. The MongoDB TTL
index already removes expired documents passively (within about a minute);
this loop makes reaping deterministic and reports counts.
"""

import asyncio
import contextlib
from typing import Optional

from services.verification_registry import VerificationRegistry
from shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 300


class ChallengeReaper:
    """Periodically calls ``registry.reap_expired()``.

    Lifecycle:
    - start() creates the asyncio task running the loop.
    - stop() cancels it and waits for it to finish.
    - run_once() executes a single sweep (also used by tests).
    """

    def __init__(
        self,
        registry: VerificationRegistry,
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._registry = registry
        self._interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self.total_reaped = 0

    @property
    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop. No-op if already running.

        Must be called from a running event loop.
        """
        if self.is_running:
            log.warning("challenge_reaper_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        log.info("challenge_reaper_started", interval_seconds=self._interval_seconds)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        log.info("challenge_reaper_stopped", total_reaped=self.total_reaped)

    async def run_once(self) -> int:
        deleted = await self._registry.reap_expired()
        self.total_reaped += deleted
        return deleted

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                log.error(
                    "challenge_reaper_pass_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            await asyncio.sleep(self._interval_seconds)
