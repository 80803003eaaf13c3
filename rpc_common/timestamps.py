#!/usr/bin/env python3

"""
Timestamp Utilities - Centralized timestamp generation and formatting

Standard: All internal timestamps use UTC with 'Z' suffix (ISO 8601)
"""

from datetime import datetime, timezone
import time
from typing import Optional


def numeric_to_iso(timestamp: float) -> str:
    """
    Convert numeric timestamp (Unix epoch) to ISO 8601 UTC format with 'Z' suffix

    Args:
        timestamp: Numeric timestamp from time.time() or a file mtime

    Returns:
        str: ISO 8601 UTC timestamp, e.g., "2025-06-20T23:17:27Z"
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace('+00:00', 'Z')


def seconds_since(timestamp: float, now: Optional[float] = None) -> int:
    """Whole seconds elapsed since an epoch timestamp."""
    if now is None:
        now = time.time()
    return int(now) - int(timestamp)
