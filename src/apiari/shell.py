"""Shell quoting and name sanitizing helpers."""

from __future__ import annotations

_SANITIZE_MAX = 40


def shell_quote(s: str) -> str:
    """Wrap s in single quotes for embedding in a shell command.

    Embedded single quotes close the quoted segment, add an escaped quote and
    reopen it:  it's -> 'it'\\''s'
    """
    return "'" + s.replace("'", "'\\''") + "'"


def sanitize(s: str) -> str:
    """Turn free text into a branch/directory-safe slug.

    Lowercased, every non-alphanumeric character becomes "-", leading and
    trailing hyphens are stripped, and the result is cut to 40 characters.

        >>> sanitize("Fix the BUG!")
        'fix-the-bug'
    """
    slug = "".join(c if c.isalnum() else "-" for c in s.lower())
    return slug.strip("-")[:_SANITIZE_MAX]
