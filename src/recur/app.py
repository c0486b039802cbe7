"""SchedulerService: composes services and wires subsystems."""

from __future__ import annotations

from pathlib import Path

from recur.infrastructure.clock import Clock, utc_now
from recur.infrastructure.config import ACTION_WEBHOOK_URL, IPC_DIR, SNAPSHOT_PATH, SchedulerSettings
from recur.infrastructure.database import AppDatabase, database
from recur.infrastructure.logger import logger
from recur.ipc.watcher import CommandDeps, CommandWatcher
from recur.scheduling.actions import ActionHandler, ActionInvoker, WebhookActionHandler
from recur.scheduling.executor import ExecutionEngine
from recur.scheduling.schedule_service import ScheduleManager
from recur.scheduling.scheduler import Scheduler
from recur.scheduling.snapshot_writer import SnapshotWriter
from recur.scheduling.types import ACTION_TYPES


def default_action_handlers(webhook_url: str = ACTION_WEBHOOK_URL) -> list[ActionHandler]:
    """One webhook handler per action type, or none when no URL is configured."""
    if not webhook_url:
        return []
    return [WebhookActionHandler(action_type, webhook_url) for action_type in ACTION_TYPES]


class SchedulerService:
    """Composes all services and manages the application lifecycle."""

    def __init__(
        self,
        db: AppDatabase = database,
        handlers: list[ActionHandler] | None = None,
        settings: SchedulerSettings | None = None,
        clock: Clock = utc_now,
        db_path: Path | None = None,
        ipc_dir: Path = IPC_DIR,
        snapshot_path: Path = SNAPSHOT_PATH,
    ) -> None:
        self._db = db
        self._handlers = default_action_handlers() if handlers is None else handlers
        self._settings = settings or SchedulerSettings()
        self._clock = clock
        self._db_path = db_path
        self._snapshot_path = snapshot_path
        self._watcher = CommandWatcher(ipc_dir)
        self.schedule_manager: ScheduleManager | None = None
        self.scheduler: Scheduler | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def init(self) -> None:
        """Open storage and build the object graph without starting any loops."""
        if not self._db.is_open:
            self._db.init(self._db_path)
        repo = self._db.schedule_repo

        snapshot_writer = SnapshotWriter(repo, self._snapshot_path, self._clock)
        invoker = ActionInvoker(self._handlers, timeout_s=self._settings.action_timeout)
        engine = ExecutionEngine(repo, invoker, self._clock)

        self.schedule_manager = ScheduleManager(
            repo,
            clock=self._clock,
            default_timezone=self._settings.default_timezone,
            on_change=snapshot_writer.refresh,
        )
        self.scheduler = Scheduler(repo, engine, self._clock, self._settings, on_change=snapshot_writer.refresh)
        snapshot_writer.refresh()

        if not invoker.action_types:
            logger.warning("No action handlers configured; every firing will fail (set ACTION_WEBHOOK_URL)")

    async def start(self) -> None:
        """Initialize all services and start the polling loops."""
        logger.info("Starting recur...")
        if self.scheduler is None:
            self.init()
        assert self.schedule_manager is not None and self.scheduler is not None

        # Overdue schedules fire once on the first tick, then resume from now.
        self.scheduler.start()
        self._watcher.start(CommandDeps(self.schedule_manager, self.scheduler))

        self._running = True
        logger.info("recur started successfully")

    async def shutdown(self) -> None:
        """Stop loops and wait briefly for in-flight firings."""
        logger.info("Shutting down...")
        self._running = False
        self._watcher.stop()
        if self.scheduler:
            await self.scheduler.shutdown()
        self._db.close()
        logger.info("Shutdown complete")
