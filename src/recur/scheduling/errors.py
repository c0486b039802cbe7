"""Scheduler error taxonomy."""

from __future__ import annotations

from typing import Any


class SchedulerError(Exception):
    """Base class for expected scheduler failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class ScheduleValidationError(SchedulerError, ValueError):
    """Malformed recurrence, action, or timezone. Raised at write time."""


class ScheduleNotFoundError(SchedulerError, LookupError):
    def __init__(self, schedule_id: str) -> None:
        super().__init__(f"Schedule not found: {schedule_id}", {"schedule_id": schedule_id})
        self.schedule_id = schedule_id


class ActionInvocationError(SchedulerError):
    """Raised by action handlers for failures they can describe."""


class PersistenceError(SchedulerError):
    """The store rejected a write."""
