from __future__ import annotations

import allure
import pytest

from cli_exec.failure_classifier import classify_failure, counts_toward_breaker, is_retryable
from cli_exec.models import FailureKind

pytestmark = [
    allure.epic("Command Execution"),
    allure.feature("Retry Policy"),
]


@pytest.mark.parametrize(
    "message",
    [
        "Network connection failed",
        "Connection timeout",
        "Temporary server error",
        "Rate limit exceeded",
        "Server error 500",
        "Service unavailable 503",
        "Bad gateway 502",
        "Command timed out after 30000ms",
    ],
)
def test_classifier_identifies_retryable_errors(message: str) -> None:
    assert is_retryable(message)


@pytest.mark.parametrize(
    "message",
    [
        "Invalid API key",
        "Authentication failed",
        "Permission denied",
        "File not found",
        "Invalid argument",
        "Command was aborted",
    ],
)
def test_classifier_identifies_non_retryable_errors(message: str) -> None:
    assert not is_retryable(message)


def test_classifier_handles_missing_message() -> None:
    assert not is_retryable(None)
    assert not is_retryable("")


def test_classifier_matches_case_insensitively_and_reports_pattern() -> None:
    classified = classify_failure("upstream NETWORK unreachable")

    assert classified.retryable
    assert classified.matched_pattern == "network"
    assert classified.matched_rule == "retryable_pattern"


def test_classifier_falls_back_to_non_retryable() -> None:
    classified = classify_failure("fatal: unsupported syntax in prompt template")

    assert not classified.retryable
    assert classified.matched_pattern is None
    assert classified.matched_rule == "fallback_non_retryable"


def test_classifier_accepts_custom_regex_patterns() -> None:
    patterns = (r"quota\s+reset", r"HTTP 42\d")

    assert classify_failure("HTTP 429 returned", patterns).matched_pattern == r"HTTP 42\d"
    assert not classify_failure("Network connection failed", patterns).retryable


@pytest.mark.parametrize(
    ("failure", "message", "counted"),
    [
        (FailureKind.SPAWN_FAILED, "Failed to execute command: not found", True),
        (FailureKind.RETRIES_EXHAUSTED, "Failed after 3 attempts: boom", True),
        (FailureKind.EXIT_NON_ZERO, "gemini: command not found", True),
        (FailureKind.EXIT_NON_ZERO, "Error: not logged in", True),
        (FailureKind.EXIT_NON_ZERO, "Network connection failed", True),
        (FailureKind.EXIT_NON_ZERO, "Invalid argument: --frobnicate", False),
        (FailureKind.EXIT_NON_ZERO, None, False),
        (FailureKind.TIMEOUT, "Command timed out after 30000ms", False),
        (FailureKind.CANCELLED, "Command was aborted", False),
    ],
)
def test_breaker_counts_only_tool_level_failures(
    failure: FailureKind,
    message: str | None,
    counted: bool,
) -> None:
    assert counts_toward_breaker(failure, message) is counted
