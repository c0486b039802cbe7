"""Execution engine: fire one schedule and record the outcome."""

from __future__ import annotations

import time
from datetime import datetime

import structlog

from recur.infrastructure.clock import Clock, utc_now
from recur.infrastructure.logger import logger
from recur.scheduling.actions import ActionInvoker
from recur.scheduling.errors import PersistenceError
from recur.scheduling.recurrence import compute_next_run
from recur.scheduling.repository import ScheduleRepository
from recur.scheduling.types import (
    ExecutionResult,
    OnceRecurrence,
    RunTrigger,
    Schedule,
    ScheduleRunLog,
)


class ExecutionEngine:
    """Invokes a schedule's action exactly once, then does the bookkeeping.

    A failed action still advances next_run: the next scheduled occurrence
    is the retry. Bookkeeping is not transactional with the action; if the
    store write fails the action has still happened and the schedule may
    fire again on the next tick.
    """

    def __init__(self, repo: ScheduleRepository, invoker: ActionInvoker, clock: Clock = utc_now) -> None:
        self._repo = repo
        self._invoker = invoker
        self._clock = clock

    async def execute(self, schedule: Schedule, trigger: RunTrigger = "tick") -> ExecutionResult:
        with structlog.contextvars.bound_contextvars(schedule_id=schedule.id, trigger=trigger):
            return await self._execute(schedule, trigger)

    async def _execute(self, schedule: Schedule, trigger: RunTrigger) -> ExecutionResult:
        now = self._clock()
        start_time = time.monotonic()
        logger.info("Running schedule", name=schedule.name, action=schedule.action.type)

        # Owner context wins over action params of the same name.
        params = {**schedule.action.invocation_params(), **schedule.owner.as_params()}

        error: str | None = None
        try:
            outcome = await self._invoker.invoke(schedule.action.type, schedule.id, params)
            if not outcome.ok:
                error = outcome.error or "Action reported failure"
        except Exception as err:
            error = str(err) or type(err).__name__
            logger.exception("Action raised", action=schedule.action.type)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        status = "failure" if error else "success"
        if error:
            logger.warning("Scheduled action failed", error=error, duration_ms=duration_ms)
        else:
            logger.info("Schedule completed", duration_ms=duration_ms)

        is_completed, next_run = self._next_state(schedule, now)

        result = ExecutionResult(
            schedule_id=schedule.id,
            status=status,
            trigger=trigger,
            ran_at=now,
            next_run=next_run,
            error=error,
            duration_ms=duration_ms,
        )

        try:
            self._repo.update_after_run(
                schedule.id,
                last_run=now,
                status=status,
                error=error,
                next_run=next_run,
                is_completed=is_completed,
            )
            self._repo.log_run(ScheduleRunLog(
                schedule_id=schedule.id,
                run_at=now,
                duration_ms=duration_ms,
                status=status,
                trigger=trigger,
                error=error,
            ))
        except PersistenceError as err:
            # The action already ran; without this write the schedule may fire again.
            logger.error("Failed to persist run; schedule state may drift", error=str(err), **err.details)
            result.persisted = False

        return result

    @staticmethod
    def _next_state(schedule: Schedule, now: datetime) -> tuple[bool, datetime | None]:
        """(is_completed, next_run) after a firing at now."""
        if isinstance(schedule.recurrence, OnceRecurrence):
            return True, None
        return False, compute_next_run(schedule.recurrence, now, schedule.timezone)
