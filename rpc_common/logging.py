#!/usr/bin/env python3
"""
Unified Logging Configuration and Context Management

Provides structured logging with automatic context propagation using structlog.
The daemon core, the CLI and every agent plugin log through this module so
that request identifiers bound by the action router show up in plugin logs.
"""

import logging
import os
import sys
import uuid
from typing import Any, Dict, Optional
from pathlib import Path

import structlog

# Global flag to track if structlog has been configured
_STRUCTLOG_CONFIGURED = False


def configure_structlog(
    log_level: str = "INFO",
    log_format: str = "console",
    log_file: Optional[Path] = None,
    force_disable_console: bool = False,
    reconfigure: bool = False
) -> None:
    """
    Configure structlog with stdlib integration.

    Log records are rendered through ``structlog.stdlib.ProcessorFormatter`` so
    that records from third-party stdlib loggers (pluggy, asyncio) share the
    same format.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "console")
        log_file: Optional log file path
        force_disable_console: Force disable console output (e.g., daemon mode)
        reconfigure: Replace an earlier configuration (entry points after
            parsing their arguments)
    """
    global _STRUCTLOG_CONFIGURED

    # First call wins unless the caller explicitly reconfigures
    if _STRUCTLOG_CONFIGURED and not (force_disable_console or reconfigure):
        return

    log_level_numeric = getattr(logging, log_level.upper(), logging.INFO)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(str(log_file), mode='a')
    elif force_disable_console:
        handler = logging.NullHandler()
    else:
        # stderr keeps stdout free for action replies
        handler = logging.StreamHandler(sys.stderr)

    handler.setLevel(log_level_numeric)

    timestamper = structlog.processors.TimeStamper(fmt="iso")

    # Shared processors for both structlog and stdlib logs
    shared_processors = [
        timestamper,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer(colors=False),
        foreign_pre_chain=shared_processors,
    )
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=log_level_numeric,
        handlers=[handler],
        force=True,  # Remove existing handlers
    )

    if log_format == "json":
        logging.captureWarnings(True)
        logging.getLogger("asyncio").setLevel(logging.WARNING)

    _STRUCTLOG_CONFIGURED = True


def get_bound_logger(component: str, **default_context):
    """
    Get a bound logger with component identity and optional default context.

    Usage:
        logger = get_bound_logger("puppetd_agent", version="1.3")
        logger.info("Lock removed", lockfile=str(path))

    Args:
        component: Component name (e.g., "action_router", "puppetd_agent")
        **default_context: Default context to bind to this logger instance

    Returns:
        Bound logger with component context
    """
    if not _STRUCTLOG_CONFIGURED:
        # Entry points reconfigure with proper settings; this only makes
        # module-level loggers usable at import time.
        log_level = os.environ.get('RPC_LOG_LEVEL', 'INFO')
        log_format = os.environ.get('RPC_LOG_FORMAT', 'console')
        configure_structlog(log_level=log_level, log_format=log_format)

    base_logger = structlog.get_logger("rpc")
    return base_logger.bind(component=component, **default_context)


def bind_request_context(
    request_id: Optional[str] = None,
    caller: Optional[str] = None,
    agent: Optional[str] = None,
    action: Optional[str] = None,
    **extra_context
) -> str:
    """
    Bind request-level context for the current execution context.

    Every log entry emitted while the request is handled carries these
    fields, including entries from plugin loggers.

    Returns:
        The request id (generated when not supplied)
    """
    if request_id is None:
        request_id = uuid.uuid4().hex

    context: Dict[str, Any] = {"request_id": request_id}
    if caller:
        context["caller"] = caller
    if agent:
        context["agent"] = agent
    if action:
        context["action"] = action

    context.update(extra_context)
    structlog.contextvars.bind_contextvars(**context)
    return request_id


def clear_request_context() -> None:
    """Clear all request-level context variables."""
    structlog.contextvars.clear_contextvars()
