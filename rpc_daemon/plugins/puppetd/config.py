"""Configuration for the puppetd agent using pydantic-settings.

Values come from the host's plugin configuration (``puppetd.*`` keys) and
fall back to environment variables, then to the defaults below.

Environment Variables:
    RPC_PUPPETD_SPLAYTIME - Max splay in seconds for scheduled runs (default: 0; non-numeric or negative means no splay)
    RPC_PUPPETD_LOCKFILE - puppetd lock file (default: /var/lib/puppet/state/puppetdlock)
    RPC_PUPPETD_STATEFILE - puppetd state file (default: /var/lib/puppet/state/state.yaml)
    RPC_PUPPETD_PUPPETD - puppetd binary (default: /usr/sbin/puppetd)
    RPC_PUPPETD_OPTIONS_WHITELIST - Comma-separated permitted flags (default: --noop,--no-noop)
    RPC_PUPPETD_OPTIONS_ILLEGAL_CHARS - Regex of forbidden characters (default: [$;&|])
    RPC_PUPPETD_OPTIONS_REGEX - Regex extracting flags from the option string
"""

import re
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Union

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from rpc_common.config import compile_pattern, parse_comma_list, plugin_section
from rpc_common.constants import (
    DEFAULT_OPTIONS_ILLEGAL_CHARS,
    DEFAULT_OPTIONS_REGEX,
    DEFAULT_OPTIONS_WHITELIST,
    DEFAULT_PUPPETD_BINARY,
    DEFAULT_PUPPETD_LOCKFILE,
    DEFAULT_PUPPETD_SPLAYTIME,
    DEFAULT_PUPPETD_STATEFILE,
)
from rpc_common.exceptions import ConfigurationError

from .sanitizer import SanitizerConfig

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


class PuppetdConfig(BaseSettings):
    """Settings for the puppetd agent."""

    splaytime: int = Field(default=DEFAULT_PUPPETD_SPLAYTIME, ge=0)
    lockfile: Path = Path(DEFAULT_PUPPETD_LOCKFILE)
    statefile: Path = Path(DEFAULT_PUPPETD_STATEFILE)
    puppetd: str = DEFAULT_PUPPETD_BINARY

    # Option sanitizer
    options_whitelist: Union[str, List[str]] = Field(
        default_factory=lambda: list(DEFAULT_OPTIONS_WHITELIST),
        description="Comma-separated permitted flags or JSON array"
    )
    options_illegal_chars: Pattern[str] = Field(default=DEFAULT_OPTIONS_ILLEGAL_CHARS, validate_default=True)
    options_regex: Pattern[str] = Field(default=DEFAULT_OPTIONS_REGEX, validate_default=True)

    @field_validator('splaytime', mode='before')
    @classmethod
    def parse_splaytime(cls, v):
        """Take the leading integer of the value; anything else means no splay."""
        if isinstance(v, str):
            match = _LEADING_INT.match(v)
            v = int(match.group()) if match else 0
        if v is None:
            return 0
        if isinstance(v, int):
            return max(v, 0)
        return v

    @field_validator('options_whitelist', mode='after')
    @classmethod
    def parse_whitelist(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse the whitelist from comma-separated string or list."""
        return parse_comma_list(v)

    @field_validator('options_illegal_chars', mode='before')
    @classmethod
    def compile_illegal_chars(cls, v):
        return compile_pattern(v, "options_illegal_chars")

    @field_validator('options_regex', mode='before')
    @classmethod
    def compile_options_regex(cls, v):
        return compile_pattern(v, "options_regex")

    model_config = {
        "env_prefix": "RPC_PUPPETD_",
        "case_sensitive": False,
        "extra": "ignore"
    }

    @property
    def sanitizer_config(self) -> SanitizerConfig:
        """Frozen sanitizer settings built from this configuration."""
        return SanitizerConfig(
            whitelist=tuple(self.options_whitelist),
            illegal_chars=self.options_illegal_chars,
            token_pattern=self.options_regex,
        )

    @classmethod
    def from_pluginconf(cls, pluginconf: Optional[Dict[str, str]] = None) -> "PuppetdConfig":
        """
        Build the configuration from the host's plugin configuration map.

        Only ``puppetd.*`` keys are considered; they take precedence over
        environment variables.

        Raises:
            ConfigurationError: If a value is invalid (e.g. a bad regex)
        """
        values = plugin_section(pluginconf or {}, "puppetd")
        try:
            return cls(**values)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ]
            raise ConfigurationError(
                "Invalid puppetd configuration: " + "; ".join(errors),
                details={"errors": errors}
            ) from e
