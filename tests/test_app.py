"""Tests for service wiring and the command-line entry points."""

import asyncio
import json
import sys
from datetime import datetime, timezone

import pytest

from recur import __main__ as cli
from recur.app import SchedulerService, default_action_handlers
from recur.infrastructure.config import SchedulerSettings
from recur.infrastructure.database import AppDatabase


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    for _ in range(int(timeout / 0.01)):
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("condition not reached")


@pytest.fixture
def service(tmp_path, handlers, clock) -> SchedulerService:
    db = AppDatabase()
    db._init_test()
    return SchedulerService(
        db=db,
        handlers=list(handlers.values()),
        settings=SchedulerSettings(poll_interval=60, default_timezone="UTC"),
        clock=clock,
        ipc_dir=tmp_path / "ipc",
        snapshot_path=tmp_path / "schedules.json",
    )


class TestDefaultActionHandlers:
    def test_no_url_means_no_handlers(self):
        assert default_action_handlers("") == []

    def test_one_handler_per_action_type(self):
        types = sorted(h.action_type for h in default_action_handlers("http://hooks.local"))
        assert types == ["email.send", "notification.send", "task.create", "workflow.execute"]


class TestSchedulerService:
    def test_init_writes_empty_snapshot(self, service, tmp_path):
        service.init()
        assert json.loads((tmp_path / "schedules.json").read_text())["schedules"] == []

    @pytest.mark.asyncio
    async def test_command_file_to_firing(self, service, tmp_path, clock, handlers):
        await service.start()
        try:
            assert service.running
            commands = tmp_path / "ipc" / "commands"
            staged = commands / "001-create.json.tmp"
            staged.write_text(json.dumps({
                "type": "create_schedule",
                "name": "Standup",
                "recurrence": {"kind": "daily", "at": "09:00"},
                "action": {"type": "notification.send"},
            }))
            staged.rename(commands / "001-create.json")
            await _wait_for(lambda: service.schedule_manager.get_all(), timeout=5.0)

            [schedule] = service.schedule_manager.get_all()
            snapshot = json.loads((tmp_path / "schedules.json").read_text())
            assert [s["id"] for s in snapshot["schedules"]] == [schedule.id]

            clock.set(datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc))
            await service.scheduler.tick()
            await service.scheduler.wait_idle()
            assert [call[0] for call in handlers["notification.send"].calls] == [schedule.id]
        finally:
            await service.shutdown()
        assert not service.running


class TestSubmit:
    def test_copies_into_commands_dir(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "IPC_DIR", tmp_path / "ipc")
        source = tmp_path / "create.yaml"
        source.write_text("type: delete_schedule\nscheduleId: sched-1\n")

        assert cli.submit(source) == 0

        [queued] = list((tmp_path / "ipc" / "commands").iterdir())
        assert queued.name.endswith("-create.yaml")
        assert queued.read_text() == source.read_text()

    def test_rejects_missing_type(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "IPC_DIR", tmp_path / "ipc")
        source = tmp_path / "cmd.json"
        source.write_text(json.dumps({"scheduleId": "sched-1"}))
        assert cli.submit(source) == 1
        assert not (tmp_path / "ipc" / "commands").exists()

    def test_rejects_unknown_suffix(self, tmp_path):
        source = tmp_path / "cmd.txt"
        source.write_text("type: run_schedule")
        assert cli.submit(source) == 1

    def test_run_dispatches_submit(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cli, "IPC_DIR", tmp_path / "ipc")
        source = tmp_path / "cmd.json"
        source.write_text(json.dumps({"type": "run_schedule", "scheduleId": "sched-1"}))
        monkeypatch.setattr(sys, "argv", ["recur", "submit", str(source)])

        with pytest.raises(SystemExit) as exc_info:
            cli.run()
        assert exc_info.value.code == 0
