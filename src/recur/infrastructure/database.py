"""SQLite database schema and AppDatabase composition root."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from recur.infrastructure.config import STORE_DIR
from recur.infrastructure.logger import logger


def create_schema(db: sqlite3.Connection) -> None:
    """Create all tables and indexes. Safe to call multiple times (IF NOT EXISTS)."""
    db.executescript("""
        CREATE TABLE IF NOT EXISTS schedules (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            project_id TEXT,
            organization_id TEXT,
            created_by TEXT,
            recurrence TEXT NOT NULL,
            action TEXT NOT NULL,
            timezone TEXT NOT NULL DEFAULT 'UTC',
            is_active INTEGER NOT NULL DEFAULT 1,
            is_completed INTEGER NOT NULL DEFAULT 0,
            next_run TEXT,
            last_run TEXT,
            last_run_status TEXT,
            last_error TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_schedules_next_run ON schedules(next_run);
        CREATE INDEX IF NOT EXISTS idx_schedules_project ON schedules(project_id);
        CREATE INDEX IF NOT EXISTS idx_schedules_organization ON schedules(organization_id);

        CREATE TABLE IF NOT EXISTS schedule_run_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            schedule_id TEXT NOT NULL,
            run_at TEXT NOT NULL,
            duration_ms INTEGER NOT NULL,
            status TEXT NOT NULL,
            triggered_by TEXT NOT NULL DEFAULT 'tick',
            error TEXT,
            FOREIGN KEY (schedule_id) REFERENCES schedules(id)
        );
        CREATE INDEX IF NOT EXISTS idx_schedule_run_logs ON schedule_run_logs(schedule_id, run_at);
    """)


class AppDatabase:
    """Composition root that initializes the DB and exposes repositories."""

    def __init__(self) -> None:
        self._db: sqlite3.Connection | None = None
        # Repositories are set after init
        self.schedule_repo: ScheduleRepository | None = None  # type: ignore[name-defined]

    @property
    def is_open(self) -> bool:
        return self._db is not None

    @property
    def db(self) -> sqlite3.Connection:
        assert self._db is not None, "Database not initialized. Call init() first."
        return self._db

    def init(self, db_path: Path | None = None) -> None:
        """Open (or create) the database file, by default at the standard location."""
        db_path = db_path or STORE_DIR / "schedules.db"
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path))
        self._db.row_factory = sqlite3.Row
        self._init_repos()
        logger.info("Database ready", path=str(db_path))

    def _init_test(self) -> None:
        """For tests only. Creates a fresh in-memory database."""
        self._db = sqlite3.connect(":memory:")
        self._db.row_factory = sqlite3.Row
        self._init_repos()

    def _init_repos(self) -> None:
        assert self._db is not None
        create_schema(self._db)

        # Import here to avoid circular imports
        from recur.scheduling.repository import ScheduleRepository

        self.schedule_repo = ScheduleRepository(self._db)

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None


# Singleton instance
database = AppDatabase()
