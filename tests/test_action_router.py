#!/usr/bin/env python3
"""
Tests for action routing.

Tests cover:
- Dispatch through the firstresult hook
- Input validation against registered action metadata
- Error and timeout mapping to status codes
- Request context propagation
"""

import asyncio

import pluggy
import pytest
import structlog

from rpc_common.exceptions import LockFileError, RPCTimeoutError
from rpc_daemon.action_router import ActionRouter
from rpc_daemon.plugin_loader import PluginLoader
from rpc_daemon.plugin_utils import registry, validate_action_input, with_timeout
from rpc_daemon.rpc_types import StatusCode

hookimpl = pluggy.HookimplMarker("rpc")


class EchoPlugin:
    """Test plugin owning the 'echo' agent."""

    def __init__(self):
        self.seen_context = None

    @hookimpl
    def rpc_handle_action(self, agent, action, request, reply, context):
        if agent != "echo":
            return None
        self.seen_context = structlog.contextvars.get_contextvars()
        if action == "say":
            reply["said"] = request["text"]
            return reply
        if action == "refuse":
            reply.fail("Not today")
            return reply
        if action == "boom":
            raise RuntimeError("kaboom")
        if action == "lockfail":
            raise LockFileError("Could not remove lock: busy")
        if action == "slow":
            return self._slow(reply)
        if action == "later":
            return self._later(reply)
        return None

    async def _slow(self, reply):
        await asyncio.sleep(5)
        return reply

    async def _later(self, reply):
        await asyncio.sleep(0)
        reply["done"] = True
        return reply


@pytest.fixture
def plugin():
    return EchoPlugin()


@pytest.fixture
def router(plugin):
    loader = PluginLoader(include_builtin=False)
    loader.register_plugin(plugin, name="echo_plugin")
    return ActionRouter(loader, default_timeout=0.2)


@pytest.fixture
def echo_say_metadata():
    registry.register_action("echo", "say", {
        "action": "say",
        "summary": "Echo text back",
        "parameters": {
            "text": {"type": "str", "required": True, "python_type": str},
            "loud": {"type": "bool", "required": False, "python_type": bool},
        },
    })


class TestRouting:

    @pytest.mark.asyncio
    async def test_handled(self, router):
        response = await router.route_action("echo", "say", {"text": "hi"})
        assert response["statuscode"] == 0
        assert response["statusmsg"] == "OK"
        assert response["data"] == {"said": "hi"}
        assert response["agent"] == "echo"
        assert response["action"] == "say"

    @pytest.mark.asyncio
    async def test_handler_failure_kept(self, router):
        response = await router.route_action("echo", "refuse")
        assert response["statuscode"] == StatusCode.ABORTED
        assert response["statusmsg"] == "Not today"

    @pytest.mark.asyncio
    async def test_async_handler_awaited(self, router):
        response = await router.route_action("echo", "later")
        assert response["data"] == {"done": True}

    @pytest.mark.asyncio
    async def test_unknown_action(self, router):
        response = await router.route_action("echo", "dance")
        assert response["statuscode"] == StatusCode.UNKNOWN_ACTION
        assert response["statusmsg"] == "Unknown action 'dance' for agent 'echo'"
        assert response["data"] == {}

    @pytest.mark.asyncio
    async def test_unknown_agent(self, router):
        response = await router.route_action("nosuch", "status")
        assert response["statuscode"] == StatusCode.UNKNOWN_ACTION

    @pytest.mark.asyncio
    async def test_stats(self, router):
        await router.route_action("echo", "say", {"text": "hi"})
        await router.route_action("echo", "dance")
        assert router.stats == {"actions_routed": 2, "actions_handled": 1, "actions_failed": 1}


class TestErrors:

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, router):
        response = await router.route_action("echo", "boom")
        assert response["statuscode"] == StatusCode.UNKNOWN_ERROR
        assert response["statusmsg"] == "RuntimeError: kaboom"

    @pytest.mark.asyncio
    async def test_rpc_error(self, router):
        response = await router.route_action("echo", "lockfail")
        assert response["statuscode"] == StatusCode.UNKNOWN_ERROR
        assert response["statusmsg"] == "Could not remove lock: busy"

    @pytest.mark.asyncio
    async def test_timeout(self, router):
        response = await router.route_action("echo", "slow")
        assert response["statuscode"] == StatusCode.ABORTED
        assert response["statusmsg"] == "Action 'slow' on agent 'echo' timed out after 0.2 seconds"

    @pytest.mark.asyncio
    async def test_with_timeout_raises(self):
        with pytest.raises(RPCTimeoutError) as exc_info:
            await with_timeout(asyncio.sleep(5), 0.01, error_msg="too slow")
        assert exc_info.value.message == "too slow"


class TestValidation:

    @pytest.mark.asyncio
    async def test_missing_required(self, router, echo_say_metadata):
        response = await router.route_action("echo", "say", {})
        assert response["statuscode"] == StatusCode.MISSING_DATA
        assert response["statusmsg"] == "Missing data item 'text'"

    @pytest.mark.asyncio
    async def test_wrong_type(self, router, echo_say_metadata, plugin):
        response = await router.route_action("echo", "say", {"text": 5})
        assert response["statuscode"] == StatusCode.INVALID_DATA
        assert response["statusmsg"] == "Input 'text' should be str, got int"
        # Rejected before the handler runs
        assert plugin.seen_context is None

    def test_bool_not_accepted_as_int(self):
        metadata = {"parameters": {"count": {"required": True, "python_type": int}}}
        assert validate_action_input(metadata, {"count": True}) == (
            StatusCode.INVALID_DATA, "Input 'count' should be int, got bool"
        )
        assert validate_action_input(metadata, {"count": 3}) is None

    def test_optional_may_be_absent(self):
        metadata = {"parameters": {"loud": {"required": False, "python_type": bool}}}
        assert validate_action_input(metadata, {}) is None
        assert validate_action_input(metadata, {"loud": None}) is None


class TestContext:

    @pytest.mark.asyncio
    async def test_request_context_bound_and_cleared(self, router, plugin):
        response = await router.route_action("echo", "say", {"text": "hi"},
                                             context={"request_id": "req-1", "caller": "test"})
        assert plugin.seen_context["request_id"] == "req-1"
        assert plugin.seen_context["caller"] == "test"
        assert plugin.seen_context["agent"] == "echo"
        assert structlog.contextvars.get_contextvars() == {}

        rpc_context = response["_rpc_context"]
        assert rpc_context["request_id"] == "req-1"
        assert rpc_context["caller"] == "test"
        assert rpc_context["_response_id"].startswith("resp_")

    @pytest.mark.asyncio
    async def test_request_id_generated(self, router):
        response = await router.route_action("echo", "say", {"text": "hi"})
        assert response["_rpc_context"]["request_id"]
