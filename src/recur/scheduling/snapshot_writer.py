"""Writes a JSON snapshot of every schedule for dashboards and operators."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from recur.infrastructure.clock import Clock, utc_now
from recur.infrastructure.config import SNAPSHOT_PATH
from recur.scheduling.recurrence import describe_recurrence
from recur.scheduling.repository import ScheduleRepository
from recur.scheduling.types import Schedule


def _iso(value: Any) -> str | None:
    return value.isoformat() if value else None


def schedule_summary(schedule: Schedule) -> dict[str, Any]:
    return {
        "id": schedule.id,
        "name": schedule.name,
        "description": schedule.description,
        "schedule": describe_recurrence(schedule.recurrence),
        "timezone": schedule.timezone,
        "action": schedule.action.type,
        "state": schedule.state,
        "isActive": schedule.is_active,
        "nextRun": _iso(schedule.next_run),
        "lastRun": _iso(schedule.last_run),
        "lastRunStatus": schedule.last_run_status,
        "lastError": schedule.last_error,
        "owner": schedule.owner.as_params(),
    }


class SnapshotWriter:
    """Rewrites the snapshot file from the store on every refresh."""

    def __init__(self, repo: ScheduleRepository, path: Path = SNAPSHOT_PATH, clock: Clock = utc_now) -> None:
        self._repo = repo
        self._path = path
        self._clock = clock

    @property
    def path(self) -> Path:
        return self._path

    def refresh(self) -> None:
        schedules = self._repo.get_all_schedules()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(
            {
                "schedules": [schedule_summary(s) for s in schedules],
                "generatedAt": self._clock().isoformat(),
            },
            indent=2,
        ))
        # Readers never see a half-written file.
        tmp.replace(self._path)
