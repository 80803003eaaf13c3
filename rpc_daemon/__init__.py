#!/usr/bin/env python3

"""
RPC agent daemon

Loads agent plugins with pluggy and routes action requests to them.
"""

from .daemon_core import RPCDaemon
from .rpc_types import Request, Reply, StatusCode

__all__ = ["RPCDaemon", "Request", "Reply", "StatusCode"]
