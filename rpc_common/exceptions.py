"""Common exception classes for the RPC agent host.

Provides a hierarchy of exceptions used across rpc_common and rpc_daemon.
Expected action outcomes (a rejected option string, a lock conflict) are not
exceptions; they are reported through ``Reply.fail``.
"""

from typing import Optional, Dict, Any


class RPCError(Exception):
    """Base exception for all RPC host errors."""

    def __init__(self, message: str, code: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for replies and logs."""
        result = {"message": self.message}
        if self.code:
            result["code"] = self.code
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(RPCError):
    """Raised when plugin or host configuration is invalid."""

    def __init__(self, message: str = "Invalid configuration", **kwargs):
        super().__init__(message, code="CONFIG_ERROR", **kwargs)


class UnknownActionError(RPCError):
    """Raised when no agent implements the requested action."""

    def __init__(self, agent: str, action: str, **kwargs):
        message = f"Unknown action '{action}' for agent '{agent}'"
        super().__init__(message, code="UNKNOWN_ACTION", **kwargs)
        self.agent = agent
        self.action = action


class RPCTimeoutError(RPCError):
    """Raised when an action exceeds its timeout."""

    def __init__(self, message: str = "Operation timed out", **kwargs):
        super().__init__(message, code="TIMEOUT_ERROR", **kwargs)


class ProcessExecutionError(RPCError):
    """Raised when an external command cannot be started."""

    def __init__(self, message: str, cmd: Optional[list] = None, **kwargs):
        super().__init__(message, code="PROCESS_ERROR", **kwargs)
        self.cmd = cmd or []


class LockFileError(RPCError):
    """Raised when a lock file cannot be created or removed."""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, code="LOCK_ERROR", **kwargs)
        self.path = path
