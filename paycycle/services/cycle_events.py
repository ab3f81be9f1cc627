from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import date

from sqlalchemy.orm import Session, sessionmaker

from paycycle.config import get_settings
from paycycle.logging_config import payroll_cycle_log_context
from paycycle.services.date_engine import local_today
from paycycle.services.schedule_generation import (
    MAX_GENERATION_ITERATIONS,
    ScheduleGenerationResult,
    run_schedule_generation,
)

logger = logging.getLogger(__name__)


class PayrollCycleEvents:
    """Fire-and-forget trigger channel for payroll cycle generation.

    ``emit`` may be called from the event loop or from a worker thread (sync
    FastAPI endpoints run in a threadpool). Runs for the same configuration id
    are serialized; runs for different ids proceed independently.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        today_provider: Callable[[], date] | None = None,
        max_iterations: int = MAX_GENERATION_ITERATIONS,
        timeout_seconds: float | None = None,
    ) -> None:
        settings = get_settings()
        self.session_factory = session_factory
        self._today_provider = today_provider or (lambda: local_today(settings.timezone))
        self._max_iterations = max_iterations
        self._timeout_seconds = settings.generation_timeout_seconds if timeout_seconds is None else timeout_seconds
        self._loop: asyncio.AbstractEventLoop | None = None
        self._locks: dict[int, asyncio.Lock] = {}
        # Holders plus waiters per id; the lock is dropped when this reaches zero.
        self._lock_users: dict[int, int] = {}
        self._tasks: set[asyncio.Task] = set()

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()

    def emit(self, config_id: int) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is not None:
            if self._loop is None:
                self._loop = running
            if running is self._loop:
                self._spawn(config_id)
                return

        if self._loop is None or self._loop.is_closed():
            raise RuntimeError("Payroll cycle events are not attached to a running event loop")
        self._loop.call_soon_threadsafe(self._spawn, config_id)

    def _spawn(self, config_id: int) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._handle(config_id),
            name=f"payroll-cycle-generation-{config_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("Payroll cycle generation scheduled config_id=%s", config_id)
        return task

    async def run_now(self, config_id: int, *, today: date | None = None) -> ScheduleGenerationResult:
        """Run generation for one configuration and return the result; errors propagate."""
        lock = self._locks.setdefault(config_id, asyncio.Lock())
        self._lock_users[config_id] = self._lock_users.get(config_id, 0) + 1
        try:
            async with lock:
                return await asyncio.wait_for(
                    run_schedule_generation(
                        config_id,
                        session_factory=self.session_factory,
                        today=today or self._today_provider(),
                        max_iterations=self._max_iterations,
                    ),
                    timeout=self._timeout_seconds,
                )
        finally:
            remaining = self._lock_users[config_id] - 1
            if remaining:
                self._lock_users[config_id] = remaining
            else:
                del self._lock_users[config_id]
                del self._locks[config_id]

    async def _handle(self, config_id: int) -> ScheduleGenerationResult | None:
        with payroll_cycle_log_context(config_id):
            try:
                return await self.run_now(config_id)
            except asyncio.TimeoutError:
                logger.error(
                    "Payroll cycle generation timed out config_id=%s timeout_seconds=%s",
                    config_id,
                    self._timeout_seconds,
                )
            except Exception:
                # Nobody awaits an emitted trigger, so this is the last place the failure is seen.
                logger.exception("Payroll cycle generation failed config_id=%s", config_id)
        return None

    async def drain(self) -> None:
        # Let triggers handed over from worker threads reach the loop first.
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
