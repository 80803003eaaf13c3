"""RPC Common - Shared utilities for the RPC agent host and its plugins.

This package contains shared configuration, logging, exceptions and helpers
used by rpc_daemon and its agent plugins. It has no dependencies on
rpc_daemon to avoid circular imports.
"""

__version__ = "1.3.0"

from .timestamps import (
    numeric_to_iso,
    seconds_since,
)
from .config import RPCBaseConfig, config, load_pluginconf
from .exceptions import (
    RPCError,
    ConfigurationError,
    UnknownActionError,
    RPCTimeoutError,
    ProcessExecutionError,
    LockFileError,
)
from .logging import (
    configure_structlog,
    get_bound_logger,
    bind_request_context,
    clear_request_context,
)

__all__ = [
    "numeric_to_iso",
    "seconds_since",
    "RPCBaseConfig",
    "config",
    "load_pluginconf",
    "RPCError",
    "ConfigurationError",
    "UnknownActionError",
    "RPCTimeoutError",
    "ProcessExecutionError",
    "LockFileError",
    "configure_structlog",
    "get_bound_logger",
    "bind_request_context",
    "clear_request_context",
]
