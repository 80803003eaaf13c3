#!/usr/bin/env python3
"""Tests for rpc_common helpers: subprocesses, timestamps, replies, logging."""

import asyncio

import pytest
import structlog

from rpc_common.exceptions import ProcessExecutionError, UnknownActionError
from rpc_common.logging import bind_request_context, clear_request_context
from rpc_common.process_utils import ProcessManager, run_subprocess
from rpc_common.response_builder import action_response, error_response
from rpc_common.timestamps import numeric_to_iso, seconds_since
from rpc_daemon.rpc_types import Reply, StatusCode


class TestProcessManager:

    @pytest.mark.asyncio
    async def test_collects_output(self):
        returncode, stdout, stderr = await run_subprocess(["/bin/echo", "hello"], process_id="echo")
        assert returncode == 0
        assert stdout == "hello\n"
        assert stderr == ""

    @pytest.mark.asyncio
    async def test_arguments_not_shell_interpreted(self):
        _, stdout, _ = await run_subprocess(["/bin/echo", "$HOME; ls"], process_id="literal")
        assert stdout == "$HOME; ls\n"

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        with pytest.raises(ProcessExecutionError) as exc_info:
            await run_subprocess([str(tmp_path / "puppetd")], process_id="missing")
        assert exc_info.value.cmd == [str(tmp_path / "puppetd")]

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self):
        manager = ProcessManager()
        with pytest.raises(asyncio.TimeoutError):
            await manager.run_subprocess(["/bin/sleep", "5"], process_id="sleepy", timeout=0.1)
        assert manager.active_processes == {}


class TestTimestamps:

    def test_numeric_to_iso(self):
        assert numeric_to_iso(0) == "1970-01-01T00:00:00Z"

    def test_seconds_since(self):
        assert seconds_since(1000, now=1100.9) == 100


class TestResponses:

    def test_action_response(self):
        reply = Reply("puppetd", "status")
        reply["output"] = "Enabled, not running, never run"
        response = action_response(reply, context={"request_id": "r1", "caller": "cli", "extra": 1})
        assert response["statuscode"] == 0
        assert response["data"]["output"] == "Enabled, not running, never run"
        assert response["_rpc_context"]["request_id"] == "r1"
        assert "extra" not in response["_rpc_context"]

    def test_without_metadata(self):
        response = action_response(Reply("puppetd", "status"), include_metadata=False)
        assert "_rpc_context" not in response

    def test_error_response(self):
        error = UnknownActionError("puppetd", "restart")
        response = error_response("puppetd", "restart", StatusCode.UNKNOWN_ACTION, error.message)
        assert response["statuscode"] == 2
        assert response["statusmsg"] == "Unknown action 'restart' for agent 'puppetd'"
        assert response["data"] == {}

    def test_reply_fail(self):
        reply = Reply("puppetd", "enable")
        reply.fail("Already unlocked")
        assert not reply.ok
        assert reply.to_dict()["statuscode"] == StatusCode.ABORTED


class TestLoggingContext:

    def test_bind_and_clear(self):
        request_id = bind_request_context(caller="cli", agent="puppetd", action="status")
        context = structlog.contextvars.get_contextvars()
        assert context == {"request_id": request_id, "caller": "cli",
                           "agent": "puppetd", "action": "status"}
        clear_request_context()
        assert structlog.contextvars.get_contextvars() == {}
