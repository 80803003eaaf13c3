#!/usr/bin/env python3
"""
RPC Agent Hook Specifications

Defines the hooks agent plugins implement to plug into the daemon.
Uses pluggy for plugin management (same system as pytest).

Hook Categories:
1. Lifecycle - Daemon startup/shutdown
2. Actions - Remote action dispatch
3. Discovery - Agent metadata for callers
"""

from typing import Dict, Any, Optional, List, TYPE_CHECKING
import pluggy

if TYPE_CHECKING:
    from .rpc_types import Request, Reply

# Create hook specification marker
hookspec = pluggy.HookspecMarker("rpc")


# =============================================================================
# Lifecycle Hooks
# =============================================================================

@hookspec
def rpc_startup(config: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Called once during daemon startup.

    Args:
        config: Dictionary with ``pluginconf`` (flat plugin configuration map)
            and ``daemon`` (the host RPCBaseConfig)

    Returns:
        Optional dict describing the plugin's loaded state
    """


@hookspec
def rpc_ready() -> None:
    """
    Called when the daemon is fully initialized and ready to take requests.
    """


@hookspec
def rpc_shutdown() -> None:
    """
    Called during daemon shutdown.
    Plugins should clean up resources here.
    """


# =============================================================================
# Action Hooks
# =============================================================================

@hookspec(firstresult=True)
def rpc_handle_action(agent: str, action: str, request: "Request", reply: "Reply",
                      context: Dict[str, Any]) -> Optional[Any]:
    """
    Handle an action. First plugin to return non-None wins.

    The handler fills in ``reply``; the return value only signals that the
    action was handled. A coroutine may be returned and will be awaited by
    the router under the agent's timeout.

    Args:
        agent: Agent name (e.g., "puppetd")
        action: Action name (e.g., "runonce")
        request: The incoming request
        reply: The reply to fill in
        context: Request context (request_id, caller, ...)

    Returns:
        The reply (or an awaitable producing it), or None if not handled
    """


# =============================================================================
# Discovery Hooks
# =============================================================================

@hookspec
def rpc_describe_agents() -> List[Dict[str, Any]]:
    """
    Describe the agents a plugin provides.

    Returns:
        List of agent metadata dicts (name, version, timeout, actions with
        their input descriptions)
    """
