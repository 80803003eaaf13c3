#!/usr/bin/env python3
"""
Option sanitizer for remotely supplied puppetd command-line options.

The raw option string arrives from a remote caller and ends up on the
puppetd command line, so it is checked in two steps:

1. Any character matching the illegal-character pattern rejects the whole
   string (``IllegalCharacters``). Nothing else is reported in that case.
2. Every ``--flag[ value]`` token is extracted with the token pattern; any
   flag that is not in the whitelist rejects the string (``IllegalOptions``,
   listing the offending flags in order, duplicates kept).

Text between tokens that the token pattern does not match is ignored.
Patterns are compiled with ``re.ASCII``, so ``\w`` never matches a
non-ASCII letter.

Results are plain values; ``sanitize`` never raises for bad input.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern, Sequence, Tuple, Union

from rpc_common.constants import (
    DEFAULT_OPTIONS_ILLEGAL_CHARS,
    DEFAULT_OPTIONS_REGEX,
    DEFAULT_OPTIONS_WHITELIST,
)

ILLEGAL_CHARACTERS_MESSAGE = "Illegal charaters in puppeted options."
ILLEGAL_OPTIONS_PREFIX = "Illegal puppeted options: "


@dataclass(frozen=True)
class OptionToken:
    """One ``--flag`` extracted from the raw option string."""
    flag: str
    value: Optional[str] = None


@dataclass(frozen=True)
class SanitizerConfig:
    """Whitelist and patterns the sanitizer checks against."""
    whitelist: Tuple[str, ...] = tuple(DEFAULT_OPTIONS_WHITELIST)
    illegal_chars: Pattern[str] = field(default_factory=lambda: re.compile(DEFAULT_OPTIONS_ILLEGAL_CHARS, re.ASCII))
    token_pattern: Pattern[str] = field(default_factory=lambda: re.compile(DEFAULT_OPTIONS_REGEX, re.ASCII))

    def __post_init__(self):
        # Accept any sequence for the whitelist but store it immutably
        object.__setattr__(self, "whitelist", tuple(self.whitelist))


@dataclass(frozen=True)
class Accepted:
    """The option string passed both checks; ``options`` is the raw input."""
    options: str
    tokens: Tuple[OptionToken, ...] = ()

    ok = True

    @property
    def message(self) -> str:
        return ""


@dataclass(frozen=True)
class IllegalCharacters:
    """The option string contains a forbidden character."""
    options: str

    ok = False

    @property
    def message(self) -> str:
        return ILLEGAL_CHARACTERS_MESSAGE


@dataclass(frozen=True)
class IllegalOptions:
    """One or more extracted flags are not whitelisted."""
    flags: Tuple[str, ...]

    ok = False

    @property
    def message(self) -> str:
        return ILLEGAL_OPTIONS_PREFIX + ",".join(self.flags)


SanitizeResult = Union[Accepted, IllegalCharacters, IllegalOptions]


def extract_tokens(raw: str, pattern: Pattern[str]) -> List[OptionToken]:
    """
    Extract option tokens from ``raw``, left to right, non-overlapping.

    The flag is the first capture group, or the whole match when the
    pattern has no groups or the group did not take part in the match.
    The value is the last capture group when the pattern has at least two.
    """
    tokens = []
    groups = pattern.groups
    for match in pattern.finditer(raw):
        flag = (match.group(1) if groups >= 1 else None) or match.group(0)
        value = match.group(groups) if groups >= 2 else None
        tokens.append(OptionToken(flag=flag, value=value))
    return tokens


def find_illegal_flags(tokens: Sequence[OptionToken], whitelist: Sequence[str]) -> List[str]:
    """Flags not present verbatim in the whitelist, in token order."""
    allowed = set(whitelist)
    return [token.flag for token in tokens if token.flag not in allowed]


def sanitize(raw: Optional[str], config: Optional[SanitizerConfig] = None) -> SanitizeResult:
    """
    Check a raw option string against the configured whitelist.

    Args:
        raw: Untrusted option string, e.g. ``"--noop --tags apache"``
        config: Whitelist and patterns (defaults when omitted)

    Returns:
        ``Accepted``, ``IllegalCharacters`` or ``IllegalOptions``
    """
    if config is None:
        config = SanitizerConfig()
    raw = raw or ""

    if config.illegal_chars.search(raw):
        return IllegalCharacters(options=raw)

    tokens = extract_tokens(raw, config.token_pattern)
    illegal = find_illegal_flags(tokens, config.whitelist)
    if illegal:
        return IllegalOptions(flags=tuple(illegal))

    return Accepted(options=raw, tokens=tuple(tokens))
