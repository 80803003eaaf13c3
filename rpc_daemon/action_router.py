#!/usr/bin/env python3
"""
Action router: routes RPC action requests directly to plugin hooks.

Validates inputs against the action's declared metadata, calls the
``rpc_handle_action`` hook, awaits asynchronous handlers under the agent's
timeout and shapes the final reply.
"""

import inspect
import time
import uuid
from typing import Dict, Any, Optional

from rpc_common.config import config
from rpc_common.exceptions import RPCError, RPCTimeoutError, UnknownActionError
from rpc_common.logging import bind_request_context, clear_request_context, get_bound_logger
from rpc_common.response_builder import action_response, error_response

from .plugin_utils import registry, validate_action_input, with_timeout
from .rpc_types import Request, Reply, StatusCode

logger = get_bound_logger("action_router", version="1.0.0")


class ActionRouter:
    """
    Routes actions to plugin hooks.

    The pluggy hook is ``firstresult``: the first plugin that returns a
    non-None value owns the action.
    """

    def __init__(self, plugin_loader, default_timeout: Optional[float] = None):
        """
        Initialize the action router.

        Args:
            plugin_loader: The plugin loader instance
            default_timeout: Timeout for agents that do not declare one
        """
        self.plugin_manager = plugin_loader.pm
        self.default_timeout = default_timeout if default_timeout is not None else config.action_timeout

        self.stats = {
            "actions_routed": 0,
            "actions_handled": 0,
            "actions_failed": 0
        }

    def _timeout_for(self, agent: str) -> float:
        metadata = registry.get_agent(agent) or {}
        return metadata.get("timeout") or self.default_timeout

    async def route_action(self, agent: str, action: str, data: Optional[Dict[str, Any]] = None,
                           context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Route an action to plugin hooks.

        Args:
            agent: Agent name
            action: Action name
            data: Request data
            context: Optional context (request_id, caller)

        Returns:
            Reply dict (see ``rpc_common.response_builder``)
        """
        self.stats["actions_routed"] += 1
        data = data or {}

        context = dict(context or {})
        context.setdefault("request_id", uuid.uuid4().hex)
        context.update({"agent": agent, "action": action, "timestamp": time.time()})

        request = Request(agent, action, data,
                          request_id=context["request_id"], caller=context.get("caller"))
        reply = Reply(agent, action)

        bind_request_context(request_id=request.request_id, caller=request.caller,
                             agent=agent, action=action)
        try:
            metadata = registry.get_action(agent, action)
            if metadata is not None:
                invalid = validate_action_input(metadata, data)
                if invalid is not None:
                    statuscode, message = invalid
                    logger.warning("Rejected action input", statuscode=int(statuscode), reason=message)
                    self.stats["actions_failed"] += 1
                    reply.fail(message, statuscode)
                    return action_response(reply, context=context)

            result = self.plugin_manager.hook.rpc_handle_action(
                agent=agent,
                action=action,
                request=request,
                reply=reply,
                context=context
            )

            if result is None:
                self.stats["actions_failed"] += 1
                error = UnknownActionError(agent, action)
                logger.warning("No handler for action", error=error.to_dict())
                return error_response(agent, action, StatusCode.UNKNOWN_ACTION, error.message, context=context)

            if inspect.isawaitable(result):
                timeout = self._timeout_for(agent)
                await with_timeout(
                    result, timeout,
                    error_msg=f"Action '{action}' on agent '{agent}' timed out after {timeout} seconds"
                )

            self.stats["actions_handled"] += 1
            if not reply.ok:
                self.stats["actions_failed"] += 1
                logger.info("Action failed", statuscode=int(reply.statuscode), statusmsg=reply.statusmsg)
            else:
                logger.debug("Action completed")

            return action_response(reply, context=context)

        except RPCTimeoutError as e:
            self.stats["actions_failed"] += 1
            logger.error("Action timed out", error=e.message)
            reply.fail(e.message, StatusCode.ABORTED)
            return action_response(reply, context=context)
        except RPCError as e:
            self.stats["actions_failed"] += 1
            logger.error("Action raised an RPC error", error=e.to_dict(), exc_info=True)
            reply.fail(e.message, StatusCode.UNKNOWN_ERROR)
            return action_response(reply, context=context)
        except Exception as e:
            self.stats["actions_failed"] += 1
            logger.error("Unhandled error in action", error=str(e), exc_info=True)
            reply.fail(f"{type(e).__name__}: {e}", StatusCode.UNKNOWN_ERROR)
            return action_response(reply, context=context)
        finally:
            clear_request_context()
