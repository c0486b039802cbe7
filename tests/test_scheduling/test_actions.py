"""Tests for action handlers and the invoker."""

import json

import httpx
import pytest

from recur.scheduling.actions import ActionInvoker, CallbackActionHandler, WebhookActionHandler
from recur.scheduling.errors import ActionInvocationError
from recur.scheduling.types import ActionOutcome


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestActionInvoker:
    @pytest.mark.asyncio
    async def test_routes_by_type(self):
        seen = []

        async def record(schedule_id, params):
            seen.append((schedule_id, params))

        invoker = ActionInvoker([CallbackActionHandler("email.send", record)])
        outcome = await invoker.invoke("email.send", "sched-1", {"to": "a@example.com"})

        assert outcome.ok
        assert seen == [("sched-1", {"to": "a@example.com"})]

    @pytest.mark.asyncio
    async def test_unknown_type_is_failure(self):
        outcome = await ActionInvoker([]).invoke("email.send", "sched-1", {})
        assert not outcome.ok
        assert outcome.error == "No handler registered for action type: email.send"

    @pytest.mark.asyncio
    async def test_invocation_error_is_failure(self):
        async def refuse(schedule_id, params):
            raise ActionInvocationError("mailbox full", {"to": params["to"]})

        invoker = ActionInvoker([CallbackActionHandler("email.send", refuse)])
        outcome = await invoker.invoke("email.send", "sched-1", {"to": "a@example.com"})

        assert not outcome.ok
        assert outcome.error == "mailbox full"
        assert outcome.detail == {"to": "a@example.com"}

    @pytest.mark.asyncio
    async def test_outcome_passed_through(self):
        async def report(schedule_id, params):
            return ActionOutcome.success(record_id="task-7")

        invoker = ActionInvoker([CallbackActionHandler("task.create", report)])
        outcome = await invoker.invoke("task.create", "sched-1", {})
        assert outcome.detail == {"record_id": "task-7"}

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self):
        async def crash(schedule_id, params):
            raise KeyError("missing")

        invoker = ActionInvoker([CallbackActionHandler("task.create", crash)])
        with pytest.raises(KeyError):
            await invoker.invoke("task.create", "sched-1", {})

    def test_register_replaces(self):
        async def noop(schedule_id, params):
            return None

        invoker = ActionInvoker([CallbackActionHandler("task.create", noop)])
        invoker.register(CallbackActionHandler("task.create", noop))
        invoker.register(CallbackActionHandler("email.send", noop))
        assert invoker.action_types == ["email.send", "task.create"]


class TestWebhookActionHandler:
    @pytest.mark.asyncio
    async def test_posts_action(self):
        requests = []

        def respond(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"record_id": "task-7"})

        async with _client(respond) as client:
            handler = WebhookActionHandler("task.create", "http://actions.local/hooks/", client)
            outcome = await handler.invoke("sched-1", {"title": "Review"})

        assert outcome.ok
        assert outcome.detail == {"record_id": "task-7"}
        assert str(requests[0].url) == "http://actions.local/hooks/task.create"
        assert json.loads(requests[0].content) == {
            "type": "task.create",
            "schedule_id": "sched-1",
            "params": {"title": "Review"},
        }

    @pytest.mark.asyncio
    async def test_empty_body_is_success(self):
        async with _client(lambda request: httpx.Response(204)) as client:
            outcome = await WebhookActionHandler("email.send", "http://actions.local", client).invoke("s", {})
        assert outcome.ok
        assert outcome.detail == {}

    @pytest.mark.asyncio
    async def test_error_status_raises_invocation_error(self):
        async with _client(lambda request: httpx.Response(503, text="down")) as client:
            handler = WebhookActionHandler("email.send", "http://actions.local", client)
            with pytest.raises(ActionInvocationError, match="HTTP 503"):
                await handler.invoke("sched-1", {})

    @pytest.mark.asyncio
    async def test_transport_error_raises_invocation_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(refuse) as client:
            handler = WebhookActionHandler("email.send", "http://actions.local", client)
            with pytest.raises(ActionInvocationError, match="Webhook request failed"):
                await handler.invoke("sched-1", {})

    @pytest.mark.asyncio
    async def test_error_status_is_failed_outcome_through_invoker(self):
        async with _client(lambda request: httpx.Response(500)) as client:
            invoker = ActionInvoker([WebhookActionHandler("email.send", "http://actions.local", client)])
            outcome = await invoker.invoke("email.send", "sched-1", {})
        assert not outcome.ok
        assert outcome.detail["status_code"] == 500
