"""Tests for the schedule snapshot file."""

import json

from recur.scheduling.schedule_service import ScheduleManager
from recur.scheduling.snapshot_writer import SnapshotWriter, schedule_summary


class TestScheduleSummary:
    def test_fields(self, manager):
        schedule = manager.create(
            "Standup",
            {"kind": "weekly", "at": "09:00", "days_of_week": [1, 3]},
            {"type": "email.send"},
            owner={"project_id": "proj-1"},
        )
        summary = schedule_summary(schedule)
        assert summary["schedule"] == "Weekly on Mon, Wed at 09:00"
        assert summary["action"] == "email.send"
        assert summary["state"] == "active"
        assert summary["nextRun"] == "2024-01-03T09:00:00+00:00"
        assert summary["lastRun"] is None
        assert summary["owner"] == {"project_id": "proj-1"}


class TestSnapshotWriter:
    def test_refresh_writes_every_schedule(self, repo, clock, tmp_path):
        writer = SnapshotWriter(repo, tmp_path / "out" / "schedules.json", clock)
        manager = ScheduleManager(repo, clock=clock, on_change=writer.refresh)

        manager.create("A", {"kind": "daily", "at": "09:00"}, {"type": "email.send"})
        manager.create("B", {"kind": "custom", "cron_expression": "0 * * * *"}, {"type": "email.send"})

        data = json.loads(writer.path.read_text())
        assert sorted(s["name"] for s in data["schedules"]) == ["A", "B"]
        assert data["generatedAt"] == "2024-01-01T10:00:00+00:00"
        assert not writer.path.with_suffix(".json.tmp").exists()

    def test_refresh_reflects_deletes(self, repo, clock, tmp_path):
        writer = SnapshotWriter(repo, tmp_path / "schedules.json", clock)
        manager = ScheduleManager(repo, clock=clock, on_change=writer.refresh)
        schedule = manager.create("A", {"kind": "daily", "at": "09:00"}, {"type": "email.send"})

        manager.delete(schedule.id)

        assert json.loads(writer.path.read_text())["schedules"] == []
