"""Schedule manager: create, edit, activate and delete schedules."""

from __future__ import annotations

import random
import string
from typing import Any, Callable, Mapping

from pydantic import TypeAdapter, ValidationError

from recur.infrastructure.clock import Clock, utc_now
from recur.infrastructure.config import SCHEDULER_TIMEZONE
from recur.infrastructure.logger import logger
from recur.scheduling.errors import ScheduleNotFoundError, ScheduleValidationError
from recur.scheduling.recurrence import compute_next_run, validate_recurrence
from recur.scheduling.repository import ScheduleRepository
from recur.scheduling.types import Action, OwnerContext, Recurrence, Schedule, ScheduleRunLog

_recurrence_adapter: TypeAdapter[Recurrence] = TypeAdapter(Recurrence)
_action_adapter: TypeAdapter[Action] = TypeAdapter(Action)


def _first_error(err: ValidationError) -> str:
    first = err.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first['msg']}" if location else first["msg"]


def parse_recurrence(data: Recurrence | Mapping[str, Any]) -> Recurrence:
    if not isinstance(data, Mapping):
        return data
    try:
        return _recurrence_adapter.validate_python(dict(data))
    except ValidationError as err:
        raise ScheduleValidationError(f"Invalid recurrence: {_first_error(err)}", {"recurrence": dict(data)}) from err


def parse_action(data: Action | Mapping[str, Any]) -> Action:
    if not isinstance(data, Mapping):
        return data
    try:
        return _action_adapter.validate_python(dict(data))
    except ValidationError as err:
        raise ScheduleValidationError(f"Invalid action: {_first_error(err)}", {"action": dict(data)}) from err


def parse_owner(data: OwnerContext | Mapping[str, Any] | None) -> OwnerContext:
    if data is None:
        return OwnerContext()
    if not isinstance(data, Mapping):
        return data
    try:
        return OwnerContext.model_validate(dict(data))
    except ValidationError as err:
        raise ScheduleValidationError(f"Invalid owner: {_first_error(err)}") from err


class ScheduleManager:
    def __init__(
        self,
        repo: ScheduleRepository,
        clock: Clock = utc_now,
        default_timezone: str = SCHEDULER_TIMEZONE,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self._repo = repo
        self._clock = clock
        self._default_timezone = default_timezone
        self._on_change = on_change

    # --- CRUD ---

    def create(
        self,
        name: str,
        recurrence: Recurrence | Mapping[str, Any],
        action: Action | Mapping[str, Any],
        *,
        owner: OwnerContext | Mapping[str, Any] | None = None,
        description: str = "",
        is_active: bool = True,
        timezone: str | None = None,
    ) -> Schedule:
        if not name or not name.strip():
            raise ScheduleValidationError("Schedule name must not be empty")
        recurrence = parse_recurrence(recurrence)
        action = parse_action(action)
        tz = timezone or self._default_timezone
        validate_recurrence(recurrence, tz)

        now = self._clock()
        rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=8))
        schedule = Schedule(
            id=f"sched-{int(now.timestamp())}-{rand}",
            name=name.strip(),
            description=description,
            owner=parse_owner(owner),
            recurrence=recurrence,
            action=action,
            timezone=tz,
            is_active=is_active,
            next_run=compute_next_run(recurrence, now, tz),
            created_at=now,
            updated_at=now,
        )
        self._repo.create_schedule(schedule)
        logger.info("Schedule created", schedule_id=schedule.id, kind=recurrence.kind, next_run=schedule.next_run)
        self._changed()
        return schedule

    def get_by_id(self, id: str) -> Schedule | None:
        return self._repo.get_schedule_by_id(id)

    def get(self, id: str) -> Schedule:
        schedule = self._repo.get_schedule_by_id(id)
        if schedule is None:
            raise ScheduleNotFoundError(id)
        return schedule

    def get_all(self) -> list[Schedule]:
        return self._repo.get_all_schedules()

    def get_for_owner(
        self,
        project_id: str | None = None,
        organization_id: str | None = None,
        created_by: str | None = None,
    ) -> list[Schedule]:
        return self._repo.get_schedules_for_owner(project_id, organization_id, created_by)

    def get_run_history(self, id: str, limit: int = 50) -> list[ScheduleRunLog]:
        self.get(id)
        return self._repo.get_run_logs(id, limit)

    def update(
        self,
        id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        recurrence: Recurrence | Mapping[str, Any] | None = None,
        action: Action | Mapping[str, Any] | None = None,
        owner: OwnerContext | Mapping[str, Any] | None = None,
        timezone: str | None = None,
    ) -> Schedule:
        """Apply the given edits. A new rule or timezone restarts the schedule from now."""
        schedule = self.get(id)
        now = self._clock()
        changes: dict[str, Any] = {"updated_at": now}

        if name is not None:
            if not name.strip():
                raise ScheduleValidationError("Schedule name must not be empty")
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description
        if action is not None:
            changes["action"] = parse_action(action)
        if owner is not None:
            changes["owner"] = parse_owner(owner)
        if recurrence is not None or timezone is not None:
            new_recurrence = parse_recurrence(recurrence) if recurrence is not None else schedule.recurrence
            tz = timezone or schedule.timezone
            validate_recurrence(new_recurrence, tz)
            changes.update(
                recurrence=new_recurrence,
                timezone=tz,
                is_completed=False,
                next_run=compute_next_run(new_recurrence, now, tz),
            )

        updated = schedule.model_copy(update=changes)
        self._repo.save_schedule(updated)
        logger.info("Schedule updated", schedule_id=id, fields=sorted(k for k in changes if k != "updated_at"))
        self._changed()
        return updated

    def delete(self, id: str) -> None:
        if not self._repo.delete_schedule(id):
            raise ScheduleNotFoundError(id)
        logger.info("Schedule deleted", schedule_id=id)
        self._changed()

    # --- Activation ---

    def set_active(self, id: str, active: bool) -> Schedule:
        """Enable or disable a schedule.

        Enabling recomputes next_run from now when it is missing, or when the
        schedule was disabled and its next_run has since passed: a dormant
        schedule does not fire a backlog of missed occurrences. Disabling
        leaves next_run alone. A fired Once stays terminal either way.
        """
        schedule = self.get(id)
        now = self._clock()
        next_run = schedule.next_run

        if active and schedule.state != "terminal":
            stale = next_run is not None and next_run <= now and not schedule.is_active
            if next_run is None or stale:
                next_run = compute_next_run(schedule.recurrence, now, schedule.timezone)

        self._repo.update_schedule(id, is_active=active, next_run=next_run, updated_at=now)
        logger.info("Schedule activated" if active else "Schedule deactivated", schedule_id=id, next_run=next_run)
        self._changed()
        return schedule.model_copy(update={"is_active": active, "next_run": next_run, "updated_at": now})

    def _changed(self) -> None:
        if self._on_change:
            try:
                self._on_change()
            except Exception:
                logger.exception("Change listener failed")
