#!/usr/bin/env python3
"""
Tests for the puppetd option sanitizer.

Tests cover:
- Illegal character rejection
- Whitelist checks on extracted flags
- Token extraction with custom patterns
- Result messages
"""

import re

import pytest

from rpc_daemon.plugins.puppetd.sanitizer import (
    Accepted,
    IllegalCharacters,
    IllegalOptions,
    OptionToken,
    SanitizerConfig,
    extract_tokens,
    find_illegal_flags,
    sanitize,
)


class TestDefaultWhitelist:
    """Behaviour with the default configuration."""

    def test_noop_accepted(self):
        result = sanitize("--noop")
        assert isinstance(result, Accepted)
        assert result.ok
        assert result.options == "--noop"
        assert result.message == ""

    def test_empty_string_accepted(self):
        result = sanitize("")
        assert isinstance(result, Accepted)
        assert result.tokens == ()

    def test_none_treated_as_empty(self):
        assert isinstance(sanitize(None), Accepted)

    def test_duplicate_whitelisted_flag_accepted(self):
        result = sanitize("--noop --noop")
        assert isinstance(result, Accepted)
        assert [t.flag for t in result.tokens] == ["--noop", "--noop"]

    def test_flag_with_equals_value_rejected(self):
        result = sanitize("--environment=production")
        assert isinstance(result, IllegalOptions)
        assert result.flags == ("--environment",)
        assert result.message == "Illegal puppeted options: --environment"

    def test_semicolon_rejected_as_illegal_characters(self):
        result = sanitize("--noop; rm -rf /")
        assert isinstance(result, IllegalCharacters)
        assert not result.ok
        assert result.message == "Illegal charaters in puppeted options."

    def test_all_unknown_flags_listed_in_order(self):
        result = sanitize("--foo --bar")
        assert isinstance(result, IllegalOptions)
        assert result.flags == ("--foo", "--bar")
        assert result.message == "Illegal puppeted options: --foo,--bar"

    def test_duplicates_preserved_in_rejection(self):
        result = sanitize("--foo --noop --foo")
        assert isinstance(result, IllegalOptions)
        assert result.flags == ("--foo", "--foo")

    def test_accepted_keeps_raw_string(self):
        raw = "  --noop   --no-noop "
        result = sanitize(raw)
        assert isinstance(result, Accepted)
        assert result.options == raw

    def test_unmatched_text_ignored(self):
        # Text the token pattern does not match is not validated
        result = sanitize("--noop -x")
        assert isinstance(result, Accepted)

    def test_non_ascii_letter_cannot_hide_a_flag(self):
        result = sanitize("--noop \u00e9--server")
        assert isinstance(result, IllegalOptions)
        assert result.flags == ("--server",)


class TestIllegalCharacters:
    """Any forbidden character rejects the whole string."""

    @pytest.mark.parametrize("raw", [
        "--noop $HOME",
        "--noop; reboot",
        "--noop && reboot",
        "--noop | tee /tmp/x",
        "$",
    ])
    def test_rejected(self, raw):
        assert isinstance(sanitize(raw), IllegalCharacters)

    def test_checked_before_whitelist(self):
        # --bogus would be illegal too, only the character error is reported
        result = sanitize("--bogus;")
        assert isinstance(result, IllegalCharacters)

    def test_rejected_even_with_permissive_whitelist(self):
        config = SanitizerConfig(whitelist=("--noop", "--tags", "--debug"))
        assert isinstance(sanitize("--tags a|b", config), IllegalCharacters)


class TestCustomConfig:
    """Explicit configuration passed at call time."""

    def test_extended_whitelist(self):
        config = SanitizerConfig(whitelist=["--noop", "--tags"])
        result = sanitize("--noop --tags apache", config)
        assert isinstance(result, Accepted)
        assert result.tokens[1] == OptionToken(flag="--tags", value="apache")

    def test_whitelist_stored_as_tuple(self):
        config = SanitizerConfig(whitelist=["--noop"])
        assert config.whitelist == ("--noop",)

    def test_empty_whitelist_rejects_every_flag(self):
        config = SanitizerConfig(whitelist=())
        result = sanitize("--noop", config)
        assert isinstance(result, IllegalOptions)
        assert result.flags == ("--noop",)

    def test_empty_whitelist_accepts_empty_string(self):
        assert isinstance(sanitize("", SanitizerConfig(whitelist=())), Accepted)

    def test_whitelist_match_is_exact(self):
        result = sanitize("--noopx")
        assert isinstance(result, IllegalOptions)
        assert result.flags == ("--noopx",)

    def test_custom_illegal_characters(self):
        config = SanitizerConfig(illegal_chars=re.compile(r"[`]"))
        assert isinstance(sanitize("--noop `id`", config), IllegalCharacters)
        assert isinstance(sanitize("--noop", config), Accepted)

    def test_pure_function(self):
        config = SanitizerConfig()
        assert sanitize("--foo --noop", config) == sanitize("--foo --noop", config)


class TestExtractTokens:
    """Token extraction with different pattern shapes."""

    def test_default_pattern_flag_and_value(self):
        pattern = SanitizerConfig().token_pattern
        tokens = extract_tokens("--tags apache --noop", pattern)
        assert tokens == [
            OptionToken(flag="--tags", value="apache"),
            OptionToken(flag="--noop", value=None),
        ]

    def test_pattern_without_groups_uses_whole_match(self):
        tokens = extract_tokens("--a --b", re.compile(r"--\w+"))
        assert [t.flag for t in tokens] == ["--a", "--b"]
        assert all(t.value is None for t in tokens)

    def test_single_group_has_no_value(self):
        tokens = extract_tokens("--a x", re.compile(r"(--\w+)"))
        assert tokens == [OptionToken(flag="--a", value=None)]

    def test_optional_first_group_falls_back_to_match(self):
        pattern = re.compile(r"(--\w+)?-\w+")
        tokens = extract_tokens("-x", pattern)
        assert tokens == [OptionToken(flag="-x", value=None)]

    def test_find_illegal_flags(self):
        tokens = [OptionToken("--noop"), OptionToken("--evil"), OptionToken("--evil")]
        assert find_illegal_flags(tokens, ["--noop"]) == ["--evil", "--evil"]
