"""Argument sanitization applied before arguments reach the process boundary."""

from __future__ import annotations

import re
from collections.abc import Iterable

SHELL_METACHARACTERS = ";&|`$(){}[]<>"

_METACHARACTERS_RE = re.compile(r"[;&|`$(){}\[\]<>]")
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize_argument(value: str) -> str:
    """Delete shell metacharacters and normalize whitespace in one argument."""

    stripped = _METACHARACTERS_RE.sub("", value)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def sanitize_arguments(args: Iterable[str]) -> list[str]:
    """Sanitize every argument, dropping the ones left empty.

    Metacharacters are removed rather than escaped, so legitimate content such
    as a file name containing ``[`` is altered.
    """

    sanitized: list[str] = []
    for arg in args:
        cleaned = sanitize_argument(arg)
        if cleaned:
            sanitized.append(cleaned)
    return sanitized
