#!/usr/bin/env python3
"""
RPC Type Definitions

Request and reply objects handed to agent action handlers.
"""

import uuid
from enum import IntEnum
from typing import Any, Dict, Optional


class StatusCode(IntEnum):
    """Reply status codes understood by callers."""
    OK = 0
    ABORTED = 1
    UNKNOWN_ACTION = 2
    MISSING_DATA = 3
    INVALID_DATA = 4
    UNKNOWN_ERROR = 5


class Request:
    """
    An incoming action request.

    Data fields are read with item access (``request["forcerun"]``) or
    ``request.get(key, default)``.
    """

    def __init__(self, agent: str, action: str, data: Optional[Dict[str, Any]] = None,
                 request_id: Optional[str] = None, caller: Optional[str] = None):
        self.agent = agent
        self.action = action
        self.data: Dict[str, Any] = dict(data or {})
        self.request_id = request_id or uuid.uuid4().hex
        self.caller = caller

    def __getitem__(self, key: str) -> Any:
        return self.data.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __repr__(self) -> str:
        return f"Request(agent={self.agent!r}, action={self.action!r}, request_id={self.request_id!r})"


class Reply:
    """
    The reply an action handler fills in.

    Handlers set data fields with item access and call ``fail()`` to abort
    with a message. ``fail()`` does not raise; the handler returns after it.
    """

    def __init__(self, agent: str, action: str):
        self.agent = agent
        self.action = action
        self.data: Dict[str, Any] = {}
        self.statuscode = StatusCode.OK
        self.statusmsg = "OK"

    def __setitem__(self, key: str, value: Any) -> None:
        self.data[key] = value

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def fail(self, message: str, statuscode: StatusCode = StatusCode.ABORTED) -> None:
        """Mark the reply failed with a user-displayable message."""
        self.statuscode = StatusCode(statuscode)
        self.statusmsg = message

    @property
    def ok(self) -> bool:
        return self.statuscode == StatusCode.OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent": self.agent,
            "action": self.action,
            "statuscode": int(self.statuscode),
            "statusmsg": self.statusmsg,
            "data": dict(self.data),
        }

    def __repr__(self) -> str:
        return f"Reply(statuscode={self.statuscode.name}, statusmsg={self.statusmsg!r}, data={self.data!r})"
