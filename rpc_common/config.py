"""Shared configuration management using pydantic-settings.

Provides the host configuration with environment variable support, plus the
helpers agent plugins use to build their own settings classes from the
host's plugin configuration map.

Environment Variables:
    RPC_LOG_LEVEL - Logging level (default: INFO)
    RPC_LOG_FORMAT - Log format: json or console (default: console)
    RPC_LOG_FILE - Optional log file (default: log to stderr)
    RPC_PLUGIN_DIRS - Comma-separated extra plugin directories
    RPC_PLUGINCONF_FILE - Optional plugin configuration file
    RPC_ACTION_TIMEOUT - Default action timeout in seconds (default: 20)

The plugin configuration file holds one ``key = value`` pair per line, the
same flat layout as the host daemon's server config:

    plugin.puppetd.splaytime = 30
    plugin.puppetd.lockfile = /var/lib/puppet/state/agent_disabled.lock

Example:
    export RPC_LOG_LEVEL=DEBUG
    export RPC_PLUGINCONF_FILE=/etc/rpc-agent/server.cfg
    rpc-agent puppetd status
"""

import re
from pathlib import Path
from typing import Dict, List, Literal, Optional, Pattern, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .constants import (
    DEFAULT_ACTION_TIMEOUT,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_LEVEL,
    PLUGINCONF_PREFIX,
)
from .exceptions import ConfigurationError


def parse_comma_list(v: Union[str, List[str], None]) -> List[str]:
    """Parse a comma-separated string (or pass through a list)."""
    if v is None:
        return []
    if isinstance(v, str):
        return [item.strip() for item in v.split(',') if item.strip()]
    return [str(item).strip() for item in v if str(item).strip()]


def compile_pattern(v: Union[str, Pattern[str]], name: str) -> Pattern[str]:
    """Compile pattern text with ASCII-only classes, failing with a readable error."""
    if isinstance(v, re.Pattern):
        return v
    try:
        return re.compile(v, re.ASCII)
    except re.error as e:
        raise ValueError(f"Invalid regular expression for {name}: {v!r} ({e})")


class RPCBaseConfig(BaseSettings):
    """Host configuration shared by the daemon core and the CLI."""

    # Logging configuration
    log_level: str = DEFAULT_LOG_LEVEL
    log_format: Literal["json", "console"] = DEFAULT_LOG_FORMAT
    log_file: Optional[Path] = None

    # Plugin discovery
    plugin_dirs: Union[str, List[str]] = Field(
        default_factory=list,
        description="Comma-separated extra plugin directories or JSON array"
    )
    pluginconf_file: Optional[Path] = None

    # Actions
    action_timeout: float = Field(default=DEFAULT_ACTION_TIMEOUT, gt=0)

    @field_validator('plugin_dirs', mode='after')
    @classmethod
    def parse_plugin_dirs(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse plugin directories from comma-separated string or list."""
        return parse_comma_list(v)

    @property
    def plugin_paths(self) -> List[Path]:
        """Extra plugin directories as paths."""
        return [Path(d) for d in self.plugin_dirs]

    def get_log_level(self) -> str:
        """Get log level string for structlog."""
        return self.log_level.upper()

    model_config = {
        "env_prefix": "RPC_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"  # Ignore unknown environment variables
    }

    def __str__(self) -> str:
        return (
            f"RPCConfig(log_level={self.log_level}, "
            f"pluginconf={self.pluginconf_file})"
        )


def load_pluginconf(path: Union[str, Path]) -> Dict[str, str]:
    """
    Read a plugin configuration file into a flat dict.

    Keys lose their ``plugin.`` prefix, so ``plugin.puppetd.lockfile`` is
    returned as ``puppetd.lockfile``. Blank lines and ``#`` comments are
    skipped.

    Raises:
        ConfigurationError: If the file cannot be read or a line has no ``=``
    """
    path = Path(path)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read plugin config {path}: {e}") from e

    pluginconf: Dict[str, str] = {}
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            raise ConfigurationError(
                f"{path}:{lineno}: expected 'key = value'",
                details={"line": line}
            )
        key, value = line.split("=", 1)
        key = key.strip()
        if key.startswith(PLUGINCONF_PREFIX):
            key = key[len(PLUGINCONF_PREFIX):]
        pluginconf[key] = value.strip()

    return pluginconf


def plugin_section(pluginconf: Dict[str, str], agent: str) -> Dict[str, str]:
    """Select the ``<agent>.*`` keys of a pluginconf map, prefix removed."""
    prefix = f"{agent}."
    return {
        key[len(prefix):]: value
        for key, value in pluginconf.items()
        if key.startswith(prefix)
    }


# Global configuration instance
config = RPCBaseConfig()
