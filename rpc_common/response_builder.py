#!/usr/bin/env python3
"""
Reply builder for RPC action handlers.

Turns a handler's ``Reply`` into the standardized dict returned to callers:
the reply data and status fields, plus an ``_rpc_context`` block with
processing metadata.

Usage:
    from rpc_common.response_builder import action_response

    return action_response(reply, context=context)
"""
import time
import uuid
from typing import Any, Dict, Optional


def action_response(
    reply: Any,
    context: Optional[Dict[str, Any]] = None,
    include_metadata: bool = True
) -> Dict[str, Any]:
    """Build a standardized response for a completed action.

    Args:
        reply: The handler's reply (anything with ``to_dict()``, or a dict)
        context: Request context containing system metadata
        include_metadata: Whether to include processing metadata

    Returns:
        Standardized response dictionary
    """
    if hasattr(reply, "to_dict"):
        response = reply.to_dict()
    else:
        response = dict(reply)

    if include_metadata:
        rpc_context = {
            "_timestamp": time.time(),
            "_response_id": f"resp_{uuid.uuid4().hex[:8]}"
        }

        if context:
            for field in ["request_id", "caller", "agent", "action"]:
                if field in context:
                    rpc_context[field] = context[field]

        response["_rpc_context"] = rpc_context

    return response


def error_response(
    agent: str,
    action: str,
    statuscode: int,
    message: str,
    context: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Build a failed response when no handler reply exists.

    Args:
        agent: Agent the request was addressed to
        action: Requested action
        statuscode: Numeric status code
        message: Human-readable status message
        context: Request context with system metadata

    Returns:
        Error response dict
    """
    response_data = {
        "agent": agent,
        "action": action,
        "statuscode": int(statuscode),
        "statusmsg": message,
        "data": {}
    }

    return action_response(response_data, context=context)
