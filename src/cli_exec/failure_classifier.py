"""Deterministic failure classification for the retry policy."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

from cli_exec.config import DEFAULT_BREAKER_FAILURE_PATTERNS, DEFAULT_RETRYABLE_PATTERNS
from cli_exec.models import FailureKind

_BREAKER_COUNTED_KINDS = frozenset({FailureKind.SPAWN_FAILED, FailureKind.RETRIES_EXHAUSTED})


@dataclass(slots=True)
class FailureClassification:
    """Retryability verdict with the pattern that decided it."""

    retryable: bool
    matched_pattern: str | None

    @property
    def matched_rule(self) -> str:
        return "retryable_pattern" if self.retryable else "fallback_non_retryable"


def classify_failure(
    message: str | None,
    patterns: Iterable[str] = DEFAULT_RETRYABLE_PATTERNS,
) -> FailureClassification:
    """Classify a failure message as retryable when any pattern matches it."""

    if not message:
        return FailureClassification(retryable=False, matched_pattern=None)

    pattern = _first_match(message, tuple(patterns))
    return FailureClassification(retryable=pattern is not None, matched_pattern=pattern)


def is_retryable(
    message: str | None,
    patterns: Iterable[str] = DEFAULT_RETRYABLE_PATTERNS,
) -> bool:
    return classify_failure(message, patterns).retryable


def counts_toward_breaker(
    failure: FailureKind | None,
    message: str | None,
    patterns: Iterable[str] = DEFAULT_BREAKER_FAILURE_PATTERNS,
) -> bool:
    """Tell whether a failed call points at a broken tool rather than a bad request.

    Start failures and crashed retry loops always count. A non-zero exit counts only
    when its message matches one of ``patterns``. Other failure kinds never count.
    """

    if failure in _BREAKER_COUNTED_KINDS:
        return True
    if failure is not FailureKind.EXIT_NON_ZERO or not message:
        return False
    return _first_match(message, tuple(patterns)) is not None


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if _compile(pattern).search(haystack):
            return pattern
    return None


@lru_cache(maxsize=128)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)
