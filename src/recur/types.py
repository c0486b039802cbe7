"""Barrel re-export of all domain types."""

from recur.scheduling.types import (
    Action,
    ActionOutcome,
    CreateRecordAction,
    CustomRecurrence,
    DailyRecurrence,
    ExecuteWorkflowAction,
    ExecutionResult,
    MonthlyRecurrence,
    OnceRecurrence,
    OwnerContext,
    Recurrence,
    Schedule,
    ScheduleRunLog,
    SendEmailAction,
    SendNotificationAction,
    WeeklyRecurrence,
)

__all__ = [
    "Action",
    "ActionOutcome",
    "CreateRecordAction",
    "CustomRecurrence",
    "DailyRecurrence",
    "ExecuteWorkflowAction",
    "ExecutionResult",
    "MonthlyRecurrence",
    "OnceRecurrence",
    "OwnerContext",
    "Recurrence",
    "Schedule",
    "ScheduleRunLog",
    "SendEmailAction",
    "SendNotificationAction",
    "WeeklyRecurrence",
]
