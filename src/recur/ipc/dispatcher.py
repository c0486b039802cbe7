"""Command dispatcher and base handler."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from recur.infrastructure.logger import logger

if TYPE_CHECKING:
    from recur.ipc.watcher import CommandDeps


class CommandError(Exception):
    """Error raised by command handlers for expected failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


@dataclass
class HandlerContext:
    source: str
    deps: CommandDeps


class CommandHandler(ABC):
    """Base class for command handlers."""

    @property
    @abstractmethod
    def command(self) -> str: ...

    @abstractmethod
    async def validate(self, data: dict[str, Any]) -> Any: ...

    @abstractmethod
    async def execute(self, payload: Any, context: HandlerContext) -> None: ...

    async def handle(self, data: dict[str, Any], source: str, deps: CommandDeps) -> None:
        context = HandlerContext(source=source, deps=deps)
        validated = await self.validate(data)
        await self.execute(validated, context)


class CommandDispatcher:
    """Routes commands to registered handlers by their "type" field."""

    def __init__(self, handlers: list[CommandHandler]) -> None:
        self._handlers: dict[str, CommandHandler] = {h.command: h for h in handlers}

    @property
    def commands(self) -> list[str]:
        return sorted(self._handlers)

    async def dispatch(self, data: dict[str, Any], source: str, deps: CommandDeps) -> bool:
        """Returns False for unknown commands and expected failures, which are logged."""
        command_type = data.get("type")
        handler = self._handlers.get(command_type)  # type: ignore[arg-type]
        if not handler:
            logger.warning("Unknown command type", type=command_type, source=source)
            return False
        try:
            await handler.handle(data, source, deps)
        except CommandError as err:
            logger.warning(err.args[0], command=command_type, source=source, **err.details)
            return False
        return True
