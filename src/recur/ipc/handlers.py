"""Schedule command handlers: create, update, delete, activate, deactivate, run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from recur.infrastructure.logger import logger
from recur.ipc.dispatcher import CommandError, CommandHandler, HandlerContext
from recur.scheduling.errors import SchedulerError


def _require_schedule_id(data: dict[str, Any]) -> str:
    schedule_id = data.get("scheduleId")
    if not schedule_id or not isinstance(schedule_id, str):
        raise CommandError("Missing scheduleId", {"type": data.get("type")})
    return schedule_id


# --- CreateScheduleHandler ---


@dataclass
class CreateSchedulePayload:
    name: str
    recurrence: dict[str, Any]
    action: dict[str, Any]
    description: str = ""
    owner: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    timezone: str | None = None


class CreateScheduleHandler(CommandHandler):
    command = "create_schedule"

    async def validate(self, data: dict[str, Any]) -> CreateSchedulePayload:
        if not data.get("name") or not isinstance(data.get("recurrence"), dict) or not isinstance(data.get("action"), dict):
            raise CommandError("Missing required fields", {"required": ["name", "recurrence", "action"]})
        return CreateSchedulePayload(
            name=data["name"],
            recurrence=data["recurrence"],
            action=data["action"],
            description=data.get("description") or "",
            owner=data.get("owner") or {},
            is_active=bool(data.get("isActive", True)),
            timezone=data.get("timezone"),
        )

    async def execute(self, payload: CreateSchedulePayload, context: HandlerContext) -> None:
        try:
            schedule = context.deps.schedule_manager.create(
                payload.name,
                payload.recurrence,
                payload.action,
                owner=payload.owner,
                description=payload.description,
                is_active=payload.is_active,
                timezone=payload.timezone,
            )
        except SchedulerError as err:
            raise CommandError(str(err), err.details) from err
        logger.info("Schedule created via command", schedule_id=schedule.id, source=context.source)


# --- UpdateScheduleHandler ---


@dataclass
class UpdateSchedulePayload:
    schedule_id: str
    changes: dict[str, Any]


class UpdateScheduleHandler(CommandHandler):
    command = "update_schedule"

    _FIELDS = ("name", "description", "recurrence", "action", "owner", "timezone")

    async def validate(self, data: dict[str, Any]) -> UpdateSchedulePayload:
        schedule_id = _require_schedule_id(data)
        changes = {key: data[key] for key in self._FIELDS if data.get(key) is not None}
        if not changes:
            raise CommandError("Nothing to update", {"scheduleId": schedule_id})
        return UpdateSchedulePayload(schedule_id=schedule_id, changes=changes)

    async def execute(self, payload: UpdateSchedulePayload, context: HandlerContext) -> None:
        try:
            context.deps.schedule_manager.update(payload.schedule_id, **payload.changes)
        except SchedulerError as err:
            raise CommandError(str(err), err.details) from err
        logger.info("Schedule updated via command", schedule_id=payload.schedule_id, source=context.source)


# --- DeleteScheduleHandler ---


class DeleteScheduleHandler(CommandHandler):
    command = "delete_schedule"

    async def validate(self, data: dict[str, Any]) -> str:
        return _require_schedule_id(data)

    async def execute(self, schedule_id: str, context: HandlerContext) -> None:
        try:
            context.deps.schedule_manager.delete(schedule_id)
        except SchedulerError as err:
            raise CommandError(str(err), err.details) from err
        logger.info("Schedule deleted via command", schedule_id=schedule_id, source=context.source)


# --- Activate / DeactivateScheduleHandler ---


class _SetActiveHandler(CommandHandler):
    active: bool

    async def validate(self, data: dict[str, Any]) -> str:
        return _require_schedule_id(data)

    async def execute(self, schedule_id: str, context: HandlerContext) -> None:
        try:
            context.deps.schedule_manager.set_active(schedule_id, self.active)
        except SchedulerError as err:
            raise CommandError(str(err), err.details) from err


class ActivateScheduleHandler(_SetActiveHandler):
    command = "activate_schedule"
    active = True


class DeactivateScheduleHandler(_SetActiveHandler):
    command = "deactivate_schedule"
    active = False


# --- RunScheduleHandler ---


class RunScheduleHandler(CommandHandler):
    command = "run_schedule"

    async def validate(self, data: dict[str, Any]) -> str:
        return _require_schedule_id(data)

    async def execute(self, schedule_id: str, context: HandlerContext) -> None:
        try:
            result = await context.deps.scheduler.run_now(schedule_id)
        except SchedulerError as err:
            raise CommandError(str(err), err.details) from err
        logger.info(
            "Schedule run via command",
            schedule_id=schedule_id,
            status=result.status,
            next_run=result.next_run,
            source=context.source,
        )
