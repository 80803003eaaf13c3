#!/usr/bin/env python3
"""
Plugin utilities for agent plugins.

Provides the agent/action registry, the decorators plugins use to describe
themselves, and the helpers the router uses to validate and dispatch
actions.
"""

import asyncio
import inspect
import re
import sys
from functools import wraps
from typing import Dict, Any, Optional, Callable, Tuple, Type, Union

from typing_extensions import TypedDict, get_args, get_origin, get_type_hints

from rpc_common.exceptions import RPCTimeoutError
from rpc_common.logging import get_bound_logger

from .rpc_types import Request, Reply, StatusCode

logger = get_bound_logger("plugin_utils")


class PluginRegistry:
    """Registry of agents and their action handlers."""

    def __init__(self):
        self._agents: Dict[str, Dict[str, Any]] = {}
        self._actions: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def register_agent(self, name: str, metadata: Dict[str, Any]):
        """Register agent metadata."""
        self._agents[name] = metadata
        self._actions.setdefault(name, {})

    def register_action(self, agent: str, action: str, metadata: Dict[str, Any]):
        """Register an action handler's metadata."""
        self._actions.setdefault(agent, {})[action] = metadata

    def get_agent(self, name: str) -> Optional[Dict[str, Any]]:
        """Get agent metadata."""
        return self._agents.get(name)

    def get_action(self, agent: str, action: str) -> Optional[Dict[str, Any]]:
        """Get action metadata."""
        return self._actions.get(agent, {}).get(action)

    def agent_actions(self, agent: str) -> Dict[str, Dict[str, Any]]:
        """Get all actions registered for an agent."""
        return self._actions.get(agent, {}).copy()

    def describe_agent(self, name: str) -> Optional[Dict[str, Any]]:
        """Agent metadata plus a serializable view of its actions."""
        metadata = self.get_agent(name)
        if metadata is None:
            return None
        actions = {}
        for action, info in self.agent_actions(name).items():
            actions[action] = {
                "summary": info["summary"],
                "parameters": {
                    key: {k: v for k, v in param.items() if k != "python_type"}
                    for key, param in info["parameters"].items()
                },
            }
        return {**metadata, "actions": actions}


# Global registry instance
registry = PluginRegistry()


def agent_metadata(name: str, version: str = "1.0.0",
                   description: str = "", timeout: Optional[float] = None, **kwargs) -> Dict[str, Any]:
    """
    Register agent metadata.

    Usage (module level, in the plugin):
        PLUGIN_INFO = agent_metadata("puppetd", version="1.3",
                                     description="Manage the puppet daemon", timeout=20)
    """
    metadata = {
        "name": name,
        "version": version,
        "description": description,
        "timeout": timeout,
        **kwargs
    }
    registry.register_agent(name, metadata)
    return metadata


def action_handler(agent: str, action: str, data_type: Optional[Type[TypedDict]] = None):
    """
    Action handler decorator with TypedDict support.

    Input metadata is extracted from the TypedDict (types, required keys)
    and from the ``Args:`` section of the docstring (descriptions).

    Usage:
        class RunonceData(TypedDict):
            puppetd_options: NotRequired[str]

        @action_handler("puppetd", "runonce", data_type=RunonceData)
        async def handle_runonce(request: Request, reply: Reply) -> Reply:
            '''Trigger a single puppet run.'''
    """
    def decorator(func: Callable) -> Callable:
        metadata = _extract_metadata(func, action, data_type)

        registry.register_action(agent, action, metadata)

        func._rpc_agent = agent
        func._rpc_action = action
        func._rpc_action_metadata = metadata

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                return await func(*args, **kwargs)
        else:
            @wraps(func)
            def wrapper(*args, **kwargs):
                return func(*args, **kwargs)

        return wrapper

    return decorator


def find_action_handler(module: Any, agent: str, action: str) -> Optional[Callable]:
    """Find the decorated handler for ``agent``/``action`` in a module."""
    for _, obj in inspect.getmembers(module, inspect.isfunction):
        if getattr(obj, '_rpc_agent', None) == agent and getattr(obj, '_rpc_action', None) == action:
            return obj
    return None


def dispatch_action(module_name: str, agent: str, action: str,
                    request: Request, reply: Reply) -> Optional[Any]:
    """
    Call the decorated handler in a plugin module.

    Used by a plugin's ``rpc_handle_action`` hook. Returns whatever the
    handler returns (the reply or a coroutine), or None if the module has
    no handler for the action.
    """
    module = sys.modules[module_name]
    handler = find_action_handler(module, agent, action)
    if handler is None:
        return None
    logger.debug("Dispatching action", agent=agent, action=action, handler=handler.__name__)
    return handler(request, reply)


def validate_action_input(metadata: Dict[str, Any],
                          data: Dict[str, Any]) -> Optional[Tuple[StatusCode, str]]:
    """
    Check request data against an action's declared inputs.

    Returns:
        None when the data is acceptable, otherwise a (status code, message)
        pair suitable for ``Reply.fail``
    """
    for key, param in metadata.get("parameters", {}).items():
        if key not in data or data[key] is None:
            if param.get("required"):
                return StatusCode.MISSING_DATA, f"Missing data item '{key}'"
            continue

        expected = param.get("python_type")
        if not isinstance(expected, type):
            continue
        value = data[key]
        # bool is an int subclass; keep the two apart
        if expected is not bool and isinstance(value, bool):
            return StatusCode.INVALID_DATA, f"Input '{key}' should be {expected.__name__}, got bool"
        if not isinstance(value, expected):
            return StatusCode.INVALID_DATA, (
                f"Input '{key}' should be {expected.__name__}, got {type(value).__name__}"
            )
    return None


async def with_timeout(coro, timeout: Optional[float], error_msg: str = "Operation timed out"):
    """Run a coroutine with timeout."""
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError:
        raise RPCTimeoutError(error_msg)


# Metadata extraction

def _extract_typeddict_params(data_type: Type[TypedDict]) -> Dict[str, Dict[str, Any]]:
    """Extract parameter info from TypedDict."""
    hints = get_type_hints(data_type)
    required_keys = getattr(data_type, '__required_keys__', set())

    parameters = {}
    for key, type_hint in hints.items():
        parameters[key] = {
            'type': _get_type_string(type_hint),
            'required': key in required_keys,
            'python_type': type_hint,
        }
    return parameters


def _get_type_string(type_hint: Any) -> str:
    """Convert type hint to readable string."""
    if hasattr(type_hint, '__name__'):
        return type_hint.__name__

    origin = get_origin(type_hint)
    if origin is Union:
        args = get_args(type_hint)
        if type(None) in args:
            non_none_args = [arg for arg in args if arg is not type(None)]
            if len(non_none_args) == 1:
                return f"Optional[{_get_type_string(non_none_args[0])}]"
        return f"Union[{', '.join(_get_type_string(arg) for arg in args)}]"

    if origin:
        args = get_args(type_hint)
        if args:
            return f"{origin.__name__}[{', '.join(_get_type_string(arg) for arg in args)}]"
        return origin.__name__

    return str(type_hint)


def _extract_metadata(func: Callable, action: str,
                      data_type: Optional[Type[TypedDict]] = None) -> Dict[str, Any]:
    """Extract action metadata from a handler's TypedDict and docstring."""
    docstring = inspect.getdoc(func) or ""
    lines = docstring.split('\n')

    summary = lines[0].strip() if lines and lines[0].strip() else "No description available"

    params = _extract_typeddict_params(data_type) if data_type else {}

    for key, description in _parse_docstring_params(docstring).items():
        if key in params:
            params[key]['description'] = description

    return {
        "action": action,
        "summary": summary,
        "parameters": params,
    }


def _parse_docstring_params(docstring: str) -> Dict[str, str]:
    """Parse parameter descriptions from the Args: section of a docstring."""
    params: Dict[str, str] = {}

    param_section_pattern = re.compile(r'^\s*(Args|Arguments|Parameters|Params|Inputs):\s*$', re.IGNORECASE)
    param_pattern = re.compile(r'^\s*(\w+)\s*(?:\(([^)]+)\))?\s*:\s*(.+)$')
    section_end_pattern = re.compile(r'^\s*(Returns?|Raises?|Example|Examples|Note|Notes):\s*$', re.IGNORECASE)

    in_params_section = False
    for line in docstring.split('\n'):
        if param_section_pattern.match(line):
            in_params_section = True
            continue
        if section_end_pattern.match(line):
            in_params_section = False
            continue
        if in_params_section:
            match = param_pattern.match(line)
            if match:
                params[match.group(1)] = match.group(3).strip()

    return params
