"""Periodic and sign-in triggers for the sync engine."""

import asyncio
from typing import Callable, Optional, Set

from ..auth.provider import AuthProvider
from ..utils.logging_config import get_logger, log_exception
from .engine import SyncEngine

logger = get_logger("sync")


class SyncScheduler:
    """Triggers a sync every ``interval_seconds`` and whenever a user signs in."""

    def __init__(self, engine: SyncEngine, auth: AuthProvider, interval_seconds: float = 60):
        self.engine = engine
        self.auth = auth
        self.interval_seconds = interval_seconds

        self._task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._triggered: Set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic loop on the running event loop."""
        if self.running:
            return
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(self._run_periodic())
        self._unsubscribe = self.auth.on_auth_state_change(self._on_auth_change)
        logger.info(f"Sync scheduler started (interval={self.interval_seconds}s)")

    async def stop(self) -> None:
        """Cancel the periodic loop and wait for triggered cycles to finish."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        # Cycles are never cancelled mid-flight
        if self._triggered:
            await asyncio.gather(*self._triggered, return_exceptions=True)
        logger.info("Sync scheduler stopped")

    def trigger(self) -> None:
        """Start a cycle in the background; skipped by the engine if one is running."""
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._spawn)

    def _spawn(self) -> None:
        task = asyncio.ensure_future(self._run_once())
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)

    def _on_auth_change(self, user_id: Optional[str]) -> None:
        if user_id:
            logger.info(f"User {user_id} signed in - triggering sync")
            self.trigger()

    async def _run_once(self) -> None:
        try:
            await self.engine.sync()
        except Exception as e:
            log_exception("sync", e, {"trigger": "scheduler"})

    async def _run_periodic(self) -> None:
        while True:
            await self._run_once()
            await asyncio.sleep(self.interval_seconds)
