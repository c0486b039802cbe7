"""Scheduling domain types."""

from __future__ import annotations

from datetime import datetime, time
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator

RunStatus = Literal["success", "failure"]
RunTrigger = Literal["tick", "manual"]
ScheduleState = Literal["active", "inactive", "terminal"]


# --- Recurrence ---


class _TimeOfDay(BaseModel):
    at: time

    @field_validator("at")
    @classmethod
    def _drop_tzinfo(cls, value: time) -> time:
        # Times of day are wall-clock in the schedule's own timezone.
        return value.replace(tzinfo=None)


class OnceRecurrence(BaseModel):
    kind: Literal["once"] = "once"
    at: datetime  # naive values are read in the schedule's timezone


class DailyRecurrence(_TimeOfDay):
    kind: Literal["daily"] = "daily"


class WeeklyRecurrence(_TimeOfDay):
    kind: Literal["weekly"] = "weekly"
    days_of_week: list[int]  # 0 = Sunday ... 6 = Saturday

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("days_of_week must not be empty")
        out_of_range = [d for d in value if not 0 <= d <= 6]
        if out_of_range:
            raise ValueError(f"days_of_week must be within 0..6, got {out_of_range}")
        return sorted(set(value))


class MonthlyRecurrence(_TimeOfDay):
    kind: Literal["monthly"] = "monthly"
    day_of_month: int = Field(ge=1, le=31)


class CustomRecurrence(BaseModel):
    kind: Literal["custom"] = "custom"
    cron_expression: str = Field(min_length=1)

    @field_validator("cron_expression")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return " ".join(value.split())


Recurrence = Annotated[
    Union[OnceRecurrence, DailyRecurrence, WeeklyRecurrence, MonthlyRecurrence, CustomRecurrence],
    Field(discriminator="kind"),
]


# --- Actions ---


class _ActionBase(BaseModel):
    params: dict[str, Any] = Field(default_factory=dict)

    def invocation_params(self) -> dict[str, Any]:
        return dict(self.params)


class CreateRecordAction(_ActionBase):
    type: Literal["task.create"] = "task.create"
    kind: str = "task"

    def invocation_params(self) -> dict[str, Any]:
        return {**self.params, "kind": self.kind}


class SendNotificationAction(_ActionBase):
    type: Literal["notification.send"] = "notification.send"


class SendEmailAction(_ActionBase):
    type: Literal["email.send"] = "email.send"


class ExecuteWorkflowAction(_ActionBase):
    type: Literal["workflow.execute"] = "workflow.execute"
    workflow_id: str

    def invocation_params(self) -> dict[str, Any]:
        return {**self.params, "workflow_id": self.workflow_id}


Action = Annotated[
    Union[CreateRecordAction, SendNotificationAction, SendEmailAction, ExecuteWorkflowAction],
    Field(discriminator="type"),
]

ACTION_TYPES: tuple[str, ...] = ("task.create", "notification.send", "email.send", "workflow.execute")


class ActionOutcome(BaseModel):
    """What an action handler reports back. Raising is also a failure."""

    ok: bool = True
    error: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, **detail: Any) -> ActionOutcome:
        return cls(ok=True, detail=detail)

    @classmethod
    def failure(cls, error: str, **detail: Any) -> ActionOutcome:
        return cls(ok=False, error=error, detail=detail)


# --- Schedule ---


class OwnerContext(BaseModel):
    project_id: str | None = None
    organization_id: str | None = None
    created_by: str | None = None

    def as_params(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


class Schedule(BaseModel):
    id: str
    name: str
    description: str = ""
    owner: OwnerContext = Field(default_factory=OwnerContext)
    recurrence: Recurrence
    action: Action
    timezone: str = "UTC"
    is_active: bool = True
    is_completed: bool = False  # a Once schedule that already fired
    next_run: datetime | None = None
    last_run: datetime | None = None
    last_run_status: RunStatus | None = None
    last_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def state(self) -> ScheduleState:
        if self.is_completed:
            return "terminal"
        return "active" if self.is_active else "inactive"

    def is_due(self, now: datetime) -> bool:
        return self.state == "active" and self.next_run is not None and self.next_run <= now


class ScheduleRunLog(BaseModel):
    id: int | None = None
    schedule_id: str
    run_at: datetime
    duration_ms: int
    status: RunStatus
    trigger: RunTrigger = "tick"
    error: str | None = None


class ExecutionResult(BaseModel):
    schedule_id: str
    status: RunStatus
    trigger: RunTrigger
    ran_at: datetime
    next_run: datetime | None = None
    error: str | None = None
    duration_ms: int = 0
    persisted: bool = True

    @property
    def ok(self) -> bool:
        return self.status == "success"
