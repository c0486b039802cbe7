"""Schedule CRUD, due-schedule queries, and run logging."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any

from recur.infrastructure.clock import to_utc
from recur.scheduling.errors import PersistenceError
from recur.scheduling.types import OwnerContext, RunStatus, Schedule, ScheduleRunLog

# Columns callers may set through update_schedule().
_UPDATABLE = frozenset({
    "name", "description", "project_id", "organization_id", "created_by", "recurrence", "action",
    "timezone", "is_active", "is_completed", "next_run", "last_run", "last_run_status", "last_error",
    "updated_at",
})


def _ts(value: datetime | None) -> str | None:
    # Fixed-width UTC strings so that SQL string comparison orders instants.
    return to_utc(value).isoformat(timespec="microseconds") if value else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _column_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return _ts(value)
    if isinstance(value, bool):
        return int(value)
    if hasattr(value, "model_dump_json"):
        return value.model_dump_json()
    return value


class ScheduleRepository:
    def __init__(self, db: sqlite3.Connection) -> None:
        self._db = db

    def create_schedule(self, schedule: Schedule) -> None:
        self._db.execute(
            """INSERT INTO schedules
               (id, name, description, project_id, organization_id, created_by, recurrence, action, timezone,
                is_active, is_completed, next_run, last_run, last_run_status, last_error, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                schedule.id, schedule.name, schedule.description,
                schedule.owner.project_id, schedule.owner.organization_id, schedule.owner.created_by,
                schedule.recurrence.model_dump_json(), schedule.action.model_dump_json(), schedule.timezone,
                int(schedule.is_active), int(schedule.is_completed),
                _ts(schedule.next_run), _ts(schedule.last_run), schedule.last_run_status, schedule.last_error,
                _ts(schedule.created_at), _ts(schedule.updated_at),
            ),
        )
        self._db.commit()

    def save_schedule(self, schedule: Schedule) -> None:
        """Overwrite every mutable column of an existing schedule."""
        self.update_schedule(
            schedule.id,
            name=schedule.name,
            description=schedule.description,
            project_id=schedule.owner.project_id,
            organization_id=schedule.owner.organization_id,
            created_by=schedule.owner.created_by,
            recurrence=schedule.recurrence,
            action=schedule.action,
            timezone=schedule.timezone,
            is_active=schedule.is_active,
            is_completed=schedule.is_completed,
            next_run=schedule.next_run,
            last_run=schedule.last_run,
            last_run_status=schedule.last_run_status,
            last_error=schedule.last_error,
            updated_at=schedule.updated_at,
        )

    def get_schedule_by_id(self, id: str) -> Schedule | None:
        row = self._db.execute("SELECT * FROM schedules WHERE id = ?", (id,)).fetchone()
        if not row:
            return None
        return self._row_to_schedule(row)

    def get_schedules_for_owner(
        self,
        project_id: str | None = None,
        organization_id: str | None = None,
        created_by: str | None = None,
    ) -> list[Schedule]:
        """Schedules matching every owner field that is given."""
        clauses: list[str] = []
        values: list[str] = []
        for column, value in (("project_id", project_id), ("organization_id", organization_id), ("created_by", created_by)):
            if value is not None:
                clauses.append(f"{column} = ?")
                values.append(value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._db.execute(f"SELECT * FROM schedules {where} ORDER BY created_at DESC", values).fetchall()
        return [self._row_to_schedule(row) for row in rows]

    def get_all_schedules(self) -> list[Schedule]:
        rows = self._db.execute("SELECT * FROM schedules ORDER BY created_at DESC").fetchall()
        return [self._row_to_schedule(row) for row in rows]

    def update_schedule(self, id: str, **updates: Any) -> bool:
        """Set the given columns. None values are written as NULL."""
        unknown = set(updates) - _UPDATABLE
        if unknown:
            raise ValueError(f"Unknown schedule columns: {sorted(unknown)}")
        if not updates:
            return False
        fields = [f"{key} = ?" for key in updates]
        values = [_column_value(value) for value in updates.values()]
        values.append(id)
        result = self._db.execute(f"UPDATE schedules SET {', '.join(fields)} WHERE id = ?", values)
        self._db.commit()
        return result.rowcount > 0

    def update_after_run(
        self,
        id: str,
        *,
        last_run: datetime,
        status: RunStatus,
        error: str | None,
        next_run: datetime | None,
        is_completed: bool,
    ) -> None:
        try:
            result = self._db.execute(
                """UPDATE schedules
                   SET last_run = ?, last_run_status = ?, last_error = ?, next_run = ?,
                       is_completed = ?, updated_at = ?
                   WHERE id = ?""",
                (_ts(last_run), status, error, _ts(next_run), int(is_completed), _ts(last_run), id),
            )
            self._db.commit()
        except sqlite3.Error as err:
            raise PersistenceError(f"Failed to record run: {err}", {"schedule_id": id}) from err
        if result.rowcount == 0:
            raise PersistenceError("Schedule disappeared before its run was recorded", {"schedule_id": id})

    def delete_schedule(self, id: str) -> bool:
        self._db.execute("DELETE FROM schedule_run_logs WHERE schedule_id = ?", (id,))
        result = self._db.execute("DELETE FROM schedules WHERE id = ?", (id,))
        self._db.commit()
        return result.rowcount > 0

    def get_due_schedules(self, now: datetime) -> list[Schedule]:
        rows = self._db.execute(
            """SELECT * FROM schedules
               WHERE is_active = 1 AND is_completed = 0 AND next_run IS NOT NULL AND next_run <= ?
               ORDER BY next_run""",
            (_ts(now),),
        ).fetchall()
        return [self._row_to_schedule(row) for row in rows]

    def log_run(self, log: ScheduleRunLog) -> None:
        try:
            self._db.execute(
                """INSERT INTO schedule_run_logs (schedule_id, run_at, duration_ms, status, triggered_by, error)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (log.schedule_id, _ts(log.run_at), log.duration_ms, log.status, log.trigger, log.error),
            )
            self._db.commit()
        except sqlite3.Error as err:
            raise PersistenceError(f"Failed to log run: {err}", {"schedule_id": log.schedule_id}) from err

    def get_run_logs(self, schedule_id: str, limit: int = 50) -> list[ScheduleRunLog]:
        """Most recent runs first."""
        rows = self._db.execute(
            "SELECT * FROM schedule_run_logs WHERE schedule_id = ? ORDER BY run_at DESC, id DESC LIMIT ?",
            (schedule_id, limit),
        ).fetchall()
        return [
            ScheduleRunLog(
                id=row["id"],
                schedule_id=row["schedule_id"],
                run_at=_dt(row["run_at"]),
                duration_ms=row["duration_ms"],
                status=row["status"],
                trigger=row["triggered_by"],
                error=row["error"],
            )
            for row in rows
        ]

    def _row_to_schedule(self, row: sqlite3.Row) -> Schedule:
        return Schedule(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            owner=OwnerContext(
                project_id=row["project_id"],
                organization_id=row["organization_id"],
                created_by=row["created_by"],
            ),
            recurrence=json.loads(row["recurrence"]),
            action=json.loads(row["action"]),
            timezone=row["timezone"],
            is_active=bool(row["is_active"]),
            is_completed=bool(row["is_completed"]),
            next_run=_dt(row["next_run"]),
            last_run=_dt(row["last_run"]),
            last_run_status=row["last_run_status"],
            last_error=row["last_error"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )
