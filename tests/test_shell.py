"""Tests for shell quoting and sanitizing."""

from __future__ import annotations

from apiari.shell import sanitize, shell_quote


class TestShellQuote:
    def test_simple(self):
        assert shell_quote("hello") == "'hello'"

    def test_with_spaces(self):
        assert shell_quote("hello world") == "'hello world'"

    def test_with_single_quotes(self):
        assert shell_quote("it's fine") == "'it'\\''s fine'"

    def test_empty(self):
        assert shell_quote("") == "''"

    def test_metacharacters_stay_literal(self):
        assert shell_quote("$(rm -rf /); echo `x`") == "'$(rm -rf /); echo `x`'"


class TestSanitize:
    def test_basic(self):
        assert sanitize("Fix the bug") == "fix-the-bug"

    def test_special_chars(self):
        assert sanitize("add user auth (v2)") == "add-user-auth--v2"

    def test_strips_leading_trailing_hyphens(self):
        assert sanitize("--hello--") == "hello"
        assert sanitize("  hello world  ") == "hello-world"

    def test_truncates_to_40(self):
        assert len(sanitize("a" * 50)) == 40

    def test_empty(self):
        assert sanitize("") == ""
