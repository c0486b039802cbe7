"""Scheduler: polls for due schedules and fires them."""

from __future__ import annotations

import asyncio
from typing import Callable

from recur.infrastructure.clock import Clock, utc_now
from recur.infrastructure.config import SchedulerSettings
from recur.infrastructure.logger import logger
from recur.infrastructure.poll_loop import PollLoop, start_poll_loop
from recur.scheduling.errors import ScheduleNotFoundError
from recur.scheduling.executor import ExecutionEngine
from recur.scheduling.repository import ScheduleRepository
from recur.scheduling.types import ExecutionResult, RunTrigger


class Scheduler:
    """Periodic driver for the execution engine.

    Each due schedule fires in its own asyncio task, so one slow or failing
    action never holds up the rest of a tick. At most one firing per
    schedule id is in flight at a time:

    - a tick that finds a firing in flight waits for it, then re-reads the
      schedule and only fires if it is still due;
    - a manual run that finds a firing in flight waits for it and returns
      that firing's result instead of invoking the action a second time.

    The in-flight registry lives in this process only. Two schedulers on
    one store will double-fire.
    """

    def __init__(
        self,
        repo: ScheduleRepository,
        engine: ExecutionEngine,
        clock: Clock = utc_now,
        settings: SchedulerSettings | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._repo = repo
        self._engine = engine
        self._clock = clock
        self._settings = settings or SchedulerSettings()
        self._on_change = on_change
        self._semaphore = asyncio.Semaphore(self._settings.max_concurrent)
        self._inflight: dict[str, asyncio.Task[ExecutionResult | None]] = {}
        self._dispatched: set[asyncio.Task[ExecutionResult | None]] = set()
        self._loop_handle: PollLoop | None = None
        self._shutting_down = False

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the polling loop. The first tick runs immediately."""
        self._shutting_down = False
        self._loop_handle = start_poll_loop("Scheduler", self._settings.poll_interval, self.tick)

    def stop(self) -> None:
        if self._loop_handle:
            self._loop_handle.stop()
            self._loop_handle = None

    async def shutdown(self, grace_period_s: float | None = None) -> None:
        """Stop polling and give in-flight firings a chance to finish."""
        self._shutting_down = True
        self.stop()
        grace = self._settings.shutdown_grace_period if grace_period_s is None else grace_period_s
        # Manual runs live only in _inflight.
        pending = self._dispatched | set(self._inflight.values())
        if pending:
            logger.info("Waiting for in-flight firings", count=len(pending), grace_s=grace)
            _done, still_running = await asyncio.wait(pending, timeout=grace)
            if still_running:
                logger.warning("Firings still running at shutdown", count=len(still_running))

    # --- Polling ---

    async def tick(self) -> list[str]:
        """Dispatch every due schedule. Returns the ids dispatched."""
        if self._shutting_down:
            return []
        now = self._clock()
        due = self._repo.get_due_schedules(now)
        if due:
            logger.info("Found due schedules", count=len(due))

        for schedule in due:
            task = asyncio.create_task(self._run_exclusive(schedule.id, "tick"))
            self._dispatched.add(task)
            task.add_done_callback(self._dispatched.discard)
        return [s.id for s in due]

    async def wait_idle(self) -> None:
        """Wait until every dispatched firing has finished."""
        while self._dispatched:
            await asyncio.gather(*list(self._dispatched), return_exceptions=True)

    async def run_now(self, schedule_id: str) -> ExecutionResult:
        """Fire a schedule immediately, regardless of next_run or is_active."""
        if self._repo.get_schedule_by_id(schedule_id) is None:
            raise ScheduleNotFoundError(schedule_id)
        result = await self._run_exclusive(schedule_id, "manual")
        if result is None:
            # Deleted between the lookup above and the firing.
            raise ScheduleNotFoundError(schedule_id)
        return result

    # --- Internal ---

    async def _run_exclusive(self, schedule_id: str, trigger: RunTrigger) -> ExecutionResult | None:
        while (existing := self._inflight.get(schedule_id)) is not None:
            logger.debug("Firing already in flight, waiting", schedule_id=schedule_id, trigger=trigger)
            try:
                result = await asyncio.shield(existing)
            except Exception:
                result = None  # reported by whoever owns that firing
            if trigger == "manual" and result is not None:
                return result

        task = asyncio.create_task(self._fire(schedule_id, trigger))
        self._inflight[schedule_id] = task
        task.add_done_callback(lambda t: self._forget(schedule_id, t))
        return await asyncio.shield(task)

    def _forget(self, schedule_id: str, task: asyncio.Task[ExecutionResult | None]) -> None:
        if self._inflight.get(schedule_id) is task:
            del self._inflight[schedule_id]

    async def _fire(self, schedule_id: str, trigger: RunTrigger) -> ExecutionResult | None:
        async with self._semaphore:
            # Re-read: the listing that selected this schedule may be stale.
            schedule = self._repo.get_schedule_by_id(schedule_id)
            if schedule is None:
                logger.warning("Schedule vanished before firing", schedule_id=schedule_id)
                return None
            if trigger == "tick" and not schedule.is_due(self._clock()):
                logger.debug("Schedule no longer due, skipping", schedule_id=schedule_id)
                return None

            try:
                result = await self._engine.execute(schedule, trigger)
            except Exception:
                logger.exception("Error firing schedule", schedule_id=schedule_id, trigger=trigger)
                if trigger == "manual":
                    raise
                return None

        if self._on_change:
            try:
                self._on_change()
            except Exception:
                logger.exception("Change listener failed", schedule_id=schedule_id)
        return result
