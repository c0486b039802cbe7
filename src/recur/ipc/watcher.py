"""Command watcher: picks up command files dropped into the IPC directory."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from recur.infrastructure.config import COMMAND_POLL_INTERVAL, IPC_DIR
from recur.infrastructure.logger import logger
from recur.infrastructure.poll_loop import PollLoop, start_poll_loop
from recur.ipc.dispatcher import CommandDispatcher
from recur.ipc.handlers import (
    ActivateScheduleHandler,
    CreateScheduleHandler,
    DeactivateScheduleHandler,
    DeleteScheduleHandler,
    RunScheduleHandler,
    UpdateScheduleHandler,
)
from recur.scheduling.schedule_service import ScheduleManager
from recur.scheduling.scheduler import Scheduler

COMMAND_SUFFIXES = (".json", ".yaml", ".yml")


class CommandDeps:
    """Dependencies for command handlers, passed as a context object."""

    def __init__(self, schedule_manager: ScheduleManager, scheduler: Scheduler) -> None:
        self.schedule_manager = schedule_manager
        self.scheduler = scheduler


def load_command_file(path: Path) -> Any:
    """Parse a JSON or YAML command file. Malformed content raises ValueError."""
    text = path.read_text()
    if path.suffix in (".yaml", ".yml"):
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as err:
            raise ValueError(f"Invalid YAML: {err}") from err
    return json.loads(text)


class CommandWatcher:
    """Polls ``<ipc>/commands`` for command files.

    Files are processed in name order. A handled file is deleted; a file
    that can't be parsed or whose command fails is moved to ``<ipc>/errors``
    so it is not retried forever.
    """

    def __init__(self, ipc_dir: Path = IPC_DIR, interval_s: float = COMMAND_POLL_INTERVAL) -> None:
        self._dispatcher = CommandDispatcher([
            CreateScheduleHandler(),
            UpdateScheduleHandler(),
            DeleteScheduleHandler(),
            ActivateScheduleHandler(),
            DeactivateScheduleHandler(),
            RunScheduleHandler(),
        ])
        self._commands_dir = ipc_dir / "commands"
        self._errors_dir = ipc_dir / "errors"
        self._interval = interval_s
        self._processing = False
        self._loop_handle: PollLoop | None = None

    @property
    def commands_dir(self) -> Path:
        return self._commands_dir

    def start(self, deps: CommandDeps) -> None:
        if self._loop_handle:
            logger.debug("Command watcher already running, skipping duplicate start")
            return
        self._commands_dir.mkdir(parents=True, exist_ok=True)

        async def poll() -> None:
            await self.process_pending(deps)

        self._loop_handle = start_poll_loop("Command watcher", self._interval, poll)

    def stop(self) -> None:
        if self._loop_handle:
            self._loop_handle.stop()
            self._loop_handle = None

    async def dispatch(self, data: dict[str, Any], source: str, deps: CommandDeps) -> bool:
        """Dispatch a command directly, bypassing the file drop."""
        return await self._dispatcher.dispatch(data, source, deps)

    async def process_pending(self, deps: CommandDeps) -> int:
        """Process every command file currently present. Returns how many succeeded."""
        if self._processing or not self._commands_dir.exists():
            return 0
        self._processing = True

        handled = 0
        try:
            files = sorted(p for p in self._commands_dir.iterdir() if p.is_file() and p.suffix in COMMAND_SUFFIXES)
            for path in files:
                if await self._process_file(path, deps):
                    handled += 1
        finally:
            self._processing = False
        return handled

    async def _process_file(self, path: Path, deps: CommandDeps) -> bool:
        try:
            data = load_command_file(path)
        except (OSError, ValueError) as err:
            logger.warning("Unreadable command file", file=path.name, error=str(err))
            self._move_to_errors(path)
            return False

        if not isinstance(data, dict):
            logger.warning("Command file must contain a mapping", file=path.name)
            self._move_to_errors(path)
            return False

        try:
            ok = await self._dispatcher.dispatch(data, path.name, deps)
        except Exception:
            logger.exception("Error processing command", file=path.name)
            ok = False

        if ok:
            path.unlink(missing_ok=True)
        else:
            self._move_to_errors(path)
        return ok

    def _move_to_errors(self, path: Path) -> None:
        self._errors_dir.mkdir(parents=True, exist_ok=True)
        path.replace(self._errors_dir / path.name)
