"""Background sweep that reclaims idle sessions."""

from __future__ import annotations

import asyncio
import logging

from webshell.sessions.registry import SessionRegistry

logger = logging.getLogger(__name__)


class SessionJanitor:
    """Periodically reaps sessions idle longer than ``idle_timeout_seconds``.

    Reaping goes through :meth:`SessionRegistry.expire_idle`, which shares
    its teardown path with an explicit end, so a sweep racing an end
    destroys the sandbox once.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        idle_timeout_seconds: float = 30 * 60,
        interval_seconds: float = 5 * 60,
    ) -> None:
        if idle_timeout_seconds <= 0:
            raise ValueError("idle_timeout_seconds must be positive.")
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        self._registry = registry
        self.idle_timeout_seconds = idle_timeout_seconds
        self.interval_seconds = interval_seconds

    async def sweep(self) -> list[str]:
        """Run one pass and return the ids of the sessions reaped."""
        reaped = await self._registry.expire_idle(self.idle_timeout_seconds)
        if reaped:
            logger.info("Janitor reaped %d idle session(s)", len(reaped))
        return reaped

    async def run(self) -> None:
        """Sweep forever, every ``interval_seconds``.  Cancel the task to stop."""
        logger.info(
            "Janitor starting (interval=%ss idle_timeout=%ss)",
            self.interval_seconds,
            self.idle_timeout_seconds,
        )
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.sweep()
            except asyncio.CancelledError:
                logger.info("Janitor shutting down")
                break
            except Exception:
                logger.exception("Janitor sweep failed, retrying next interval")
