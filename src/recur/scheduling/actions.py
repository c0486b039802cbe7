"""Action handlers and the invoker that routes actions to them by type."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

import httpx

from recur.infrastructure.config import ACTION_TIMEOUT
from recur.infrastructure.logger import logger
from recur.scheduling.errors import ActionInvocationError
from recur.scheduling.types import ActionOutcome


class ActionHandler(ABC):
    """Base class for action handlers.

    invoke() may return an ActionOutcome, return None for plain success, or
    raise. ActionInvocationError is the expected way to report a failure the
    handler understands; anything else is treated as a crash by the caller.
    """

    @property
    @abstractmethod
    def action_type(self) -> str: ...

    @abstractmethod
    async def invoke(self, schedule_id: str, params: dict[str, Any]) -> ActionOutcome | None: ...


class CallbackActionHandler(ActionHandler):
    """Adapts a coroutine function into a handler for one action type."""

    def __init__(
        self,
        action_type: str,
        fn: Callable[[str, dict[str, Any]], Awaitable[ActionOutcome | None]],
    ) -> None:
        self._action_type = action_type
        self._fn = fn

    @property
    def action_type(self) -> str:
        return self._action_type

    async def invoke(self, schedule_id: str, params: dict[str, Any]) -> ActionOutcome | None:
        return await self._fn(schedule_id, params)


class WebhookActionHandler(ActionHandler):
    """POSTs the action to ``<base_url>/<action type>`` as JSON.

    Any 2xx response is a success; the response body (if JSON) is kept as
    outcome detail. Other statuses and transport errors are failures.
    """

    def __init__(self, action_type: str, base_url: str, client: httpx.AsyncClient | None = None) -> None:
        self._action_type = action_type
        self._url = f"{base_url.rstrip('/')}/{action_type}"
        self._client = client

    @property
    def action_type(self) -> str:
        return self._action_type

    async def invoke(self, schedule_id: str, params: dict[str, Any]) -> ActionOutcome | None:
        body = {"type": self._action_type, "schedule_id": schedule_id, "params": params}
        try:
            if self._client is not None:
                resp = await self._client.post(self._url, json=body)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await client.post(self._url, json=body)
        except httpx.HTTPError as err:
            raise ActionInvocationError(f"Webhook request failed: {err}", {"url": self._url}) from err

        if resp.is_error:
            raise ActionInvocationError(
                f"Webhook returned HTTP {resp.status_code}",
                {"url": self._url, "status_code": resp.status_code, "body": resp.text[:500]},
            )
        try:
            detail = resp.json() if resp.content else {}
        except ValueError:
            detail = {}
        return ActionOutcome.success(**detail) if isinstance(detail, dict) else ActionOutcome.success()


class ActionInvoker:
    """Routes an action to the handler registered for its type.

    Never raises for expected failures: unknown types, ActionInvocationError
    and timeouts all come back as a failed ActionOutcome. Unexpected handler
    exceptions propagate so the caller can record them with a traceback.
    """

    def __init__(self, handlers: list[ActionHandler] | None = None, timeout_s: float = ACTION_TIMEOUT) -> None:
        self._handlers: dict[str, ActionHandler] = {}
        self._timeout = timeout_s
        for handler in handlers or []:
            self.register(handler)

    def register(self, handler: ActionHandler) -> None:
        if handler.action_type in self._handlers:
            logger.warning("Replacing action handler", action_type=handler.action_type)
        self._handlers[handler.action_type] = handler

    @property
    def action_types(self) -> list[str]:
        return sorted(self._handlers)

    async def invoke(self, action_type: str, schedule_id: str, params: dict[str, Any]) -> ActionOutcome:
        handler = self._handlers.get(action_type)
        if not handler:
            logger.warning("No handler registered for action", action_type=action_type, schedule_id=schedule_id)
            return ActionOutcome.failure(f"No handler registered for action type: {action_type}")

        try:
            outcome = await asyncio.wait_for(handler.invoke(schedule_id, params), timeout=self._timeout)
        except asyncio.TimeoutError:
            return ActionOutcome.failure(f"Action timed out after {self._timeout:g}s", action_type=action_type)
        except ActionInvocationError as err:
            return ActionOutcome.failure(str(err), **err.details)

        return outcome or ActionOutcome.success()
