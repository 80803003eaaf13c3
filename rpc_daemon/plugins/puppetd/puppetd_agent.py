#!/usr/bin/env python3
"""
puppetd Agent Plugin

Manages the puppet daemon on this node:

    enable   - remove the administrative lock so scheduled runs resume
    disable  - create the administrative lock so scheduled runs are skipped
    runonce  - start a single run, optionally with whitelisted options
    status   - report whether puppetd is enabled/running and when it last ran

Configuration Options (pluginconf, see PuppetdConfig for env overrides):
    puppetd.splaytime             - How long to splay for, no splay by default
    puppetd.statefile             - Where to find the state.yaml file
    puppetd.lockfile              - Where to find the lock file
    puppetd.puppetd               - Where to find the puppetd binary
    puppetd.options_whitelist     - Comma separated list of valid options
    puppetd.options_illegal_chars - Regex of characters invalid in options
    puppetd.options_regex         - The regex options are extracted with
"""

from typing import Any, Dict, List, Optional

import pluggy
from typing_extensions import NotRequired, TypedDict

from rpc_common.exceptions import LockFileError, ProcessExecutionError
from rpc_common.logging import get_bound_logger
from rpc_common.process_utils import run_subprocess
from rpc_common.timestamps import numeric_to_iso, seconds_since
from rpc_daemon.plugin_utils import action_handler, agent_metadata, dispatch_action, registry
from rpc_daemon.rpc_types import Reply, Request

from .config import PuppetdConfig
from .lockfile import LockState, create_lock, last_run, read_lock_state, remove_lock
from .sanitizer import sanitize

AGENT_NAME = "puppetd"

# Agent metadata
PLUGIN_INFO = agent_metadata(
    AGENT_NAME,
    version="1.3",
    description="Agent to manage the puppet daemon",
    author="R.I.Pienaar",
    license="Apache License 2.0",
    timeout=20,
)

# Hook implementation marker
hookimpl = pluggy.HookimplMarker("rpc")

logger = get_bound_logger("puppetd_agent", version=PLUGIN_INFO["version"])

# Module state, replaced at startup
_config: Optional[PuppetdConfig] = None


class RunonceData(TypedDict):
    """Type-safe data for puppetd runonce."""
    puppetd_options: NotRequired[str]
    forcerun: NotRequired[bool]


def get_config() -> PuppetdConfig:
    """Active configuration (environment defaults until startup runs)."""
    global _config
    if _config is None:
        _config = PuppetdConfig.from_pluginconf({})
    return _config


def set_config(config: Optional[PuppetdConfig]) -> None:
    """Replace the active configuration; None resets it to defaults."""
    global _config
    _config = config


@hookimpl
def rpc_startup(config: Dict[str, Any]):
    """Load configuration; an invalid pattern fails the daemon startup."""
    set_config(PuppetdConfig.from_pluginconf(config.get("pluginconf")))
    cfg = get_config()
    logger.info("puppetd agent configured",
                lockfile=str(cfg.lockfile),
                statefile=str(cfg.statefile),
                puppetd=cfg.puppetd,
                splaytime=cfg.splaytime,
                whitelist=cfg.options_whitelist)
    return {"plugin.puppetd": {"loaded": True}}


@hookimpl
def rpc_handle_action(agent: str, action: str, request: Request, reply: Reply,
                      context: Dict[str, Any]):
    """Handle puppetd actions using decorated handlers."""
    if agent != AGENT_NAME:
        return None
    return dispatch_action(__name__, agent, action, request, reply)


@hookimpl
def rpc_describe_agents() -> List[Dict[str, Any]]:
    return [registry.describe_agent(AGENT_NAME)]


@hookimpl
def rpc_shutdown():
    logger.debug("puppetd agent shutting down")


@action_handler(AGENT_NAME, "status")
def handle_status(request: Request, reply: Reply) -> Reply:
    """
    Report whether puppetd is enabled, running, and when it last ran.

    Returns:
        enabled (0/1), running (0/1), lastrun (epoch seconds, 0 if never)
        and a one-line summary in output
    """
    cfg = get_config()
    state = read_lock_state(cfg.lockfile)

    if state is LockState.DISABLED:
        output = "Disabled, not running"
    elif state is LockState.RUNNING:
        output = "Enabled, running"
    else:
        output = "Enabled, not running"

    lastrun = last_run(cfg.statefile)
    if lastrun:
        output += f", last run {seconds_since(lastrun)} seconds ago"
        reply["lastrun_at"] = numeric_to_iso(lastrun)
    else:
        output += ", never run"

    reply["enabled"] = int(state.enabled)
    reply["running"] = int(state.running)
    reply["lastrun"] = lastrun
    reply["output"] = output
    return reply


@action_handler(AGENT_NAME, "enable")
def handle_enable(request: Request, reply: Reply) -> Reply:
    """Remove the administrative lock so scheduled runs resume."""
    cfg = get_config()
    state = read_lock_state(cfg.lockfile)

    if state is LockState.UNLOCKED:
        reply.fail("Already unlocked")
    elif state is LockState.RUNNING:
        # A run holds the lock; there is no administrative lock to remove
        reply["output"] = "Currently running"
    else:
        try:
            remove_lock(cfg.lockfile)
        except LockFileError as e:
            logger.error("Could not remove lock", lockfile=str(cfg.lockfile), error=e.message)
            reply.fail(e.message)
            return reply
        logger.info("Lock removed", lockfile=str(cfg.lockfile))
        reply["output"] = "Lock removed"
    return reply


@action_handler(AGENT_NAME, "disable")
def handle_disable(request: Request, reply: Reply) -> Reply:
    """Create the administrative lock so scheduled runs are skipped."""
    cfg = get_config()
    state = read_lock_state(cfg.lockfile)

    if state is LockState.DISABLED:
        reply.fail("Already disabled")
    elif state is LockState.RUNNING:
        reply.fail("Currently running")
    else:
        try:
            create_lock(cfg.lockfile)
        except LockFileError as e:
            logger.error("Could not create lock", lockfile=str(cfg.lockfile), error=e.message)
            reply.fail(e.message)
            return reply
        logger.info("Lock created", lockfile=str(cfg.lockfile))
        reply["output"] = "Lock created"
    return reply


def build_command(cfg: PuppetdConfig, options: str, forcerun: bool = False) -> List[str]:
    """
    Argument vector for a single puppetd run.

    Splay is added for scheduled-style runs only; ``forcerun`` starts the
    run immediately. ``options`` must already have passed the sanitizer;
    it is split on whitespace only, quotes are passed through literally.
    """
    cmd = [cfg.puppetd, "--onetime"]
    if not forcerun and cfg.splaytime > 0:
        cmd += ["--splaylimit", str(cfg.splaytime), "--splay"]
    cmd += options.split()
    return cmd


@action_handler(AGENT_NAME, "runonce", data_type=RunonceData)
async def handle_runonce(request: Request, reply: Reply) -> Reply:
    """
    Start a single puppetd run.

    Args:
        puppetd_options: Extra puppetd flags; each must be whitelisted
        forcerun: Run immediately, skipping the configured splay

    Returns:
        output (puppetd stdout) and exitcode
    """
    cfg = get_config()
    options = request.get("puppetd_options") or ""
    forcerun = bool(request.get("forcerun", False))

    result = sanitize(options, cfg.sanitizer_config)
    if not result.ok:
        logger.warning("Rejected puppetd options", options=options, reason=result.message)
        reply.fail(result.message)
        return reply

    if read_lock_state(cfg.lockfile) is not LockState.UNLOCKED:
        reply.fail("Lock file exists, puppetd is already running or it's disabled")
        return reply

    cmd = build_command(cfg, result.options, forcerun=forcerun)

    try:
        returncode, stdout, stderr = await run_subprocess(
            cmd, process_id=f"puppetd-runonce-{request.request_id}"
        )
    except ProcessExecutionError as e:
        logger.error("Could not run puppetd", cmd=cmd, error=e.message)
        reply.fail(f"Could not run puppetd: {e.message}")
        return reply

    if returncode != 0:
        logger.warning("puppetd exited non-zero", returncode=returncode, stderr=stderr.strip())

    reply["output"] = stdout
    reply["exitcode"] = returncode
    return reply


# Module-level marker for plugin discovery
rpc_plugin = True
