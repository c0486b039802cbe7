from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from recur.infrastructure.database import AppDatabase
from recur.scheduling.actions import ActionHandler, ActionInvoker
from recur.scheduling.executor import ExecutionEngine
from recur.scheduling.schedule_service import ScheduleManager
from recur.scheduling.types import ACTION_TYPES, ActionOutcome


class FakeClock:
    """Settable clock; call it to get the current instant."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


class RecordingHandler(ActionHandler):
    """Records every invocation; fails for schedule ids listed in fail_for."""

    def __init__(self, action_type: str, fail_for: set[str] | None = None) -> None:
        self._action_type = action_type
        self.fail_for = fail_for or set()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @property
    def action_type(self) -> str:
        return self._action_type

    async def invoke(self, schedule_id: str, params: dict[str, Any]) -> ActionOutcome | None:
        self.calls.append((schedule_id, params))
        if schedule_id in self.fail_for:
            return ActionOutcome.failure("boom")
        return None


@pytest.fixture
def db() -> AppDatabase:
    """Create an in-memory database for testing."""
    app_db = AppDatabase()
    app_db._init_test()
    return app_db


@pytest.fixture
def repo(db):
    return db.schedule_repo


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def handlers() -> dict[str, RecordingHandler]:
    return {action_type: RecordingHandler(action_type) for action_type in ACTION_TYPES}


@pytest.fixture
def invoker(handlers) -> ActionInvoker:
    return ActionInvoker(list(handlers.values()), timeout_s=1)


@pytest.fixture
def engine(repo, invoker, clock) -> ExecutionEngine:
    return ExecutionEngine(repo, invoker, clock)


@pytest.fixture
def manager(repo, clock) -> ScheduleManager:
    return ScheduleManager(repo, clock=clock, default_timezone="UTC")
