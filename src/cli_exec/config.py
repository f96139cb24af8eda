"""Runtime configuration for command execution and retry policy."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

DEFAULT_RETRYABLE_PATTERNS: tuple[str, ...] = (
    "network",
    "connection",
    "timeout",
    "timed out",
    "temporary",
    "rate limit",
    "server error",
    "503",
    "502",
    "500",
)

DEFAULT_BREAKER_FAILURE_PATTERNS: tuple[str, ...] = (
    "command not found",
    "not recognized",
    "not authenticated",
    "authentication required",
    "authentication failed",
    "not logged in",
    "token expired",
    "invalid credentials",
    "invalid token",
    "permission denied",
    "access denied",
    "forbidden",
    "network",
    "connection",
)


@dataclass(slots=True)
class ExecutorSettings:
    """Single-attempt process supervision settings."""

    timeout_ms: int = 30_000
    kill_grace_ms: int = 5_000
    use_shell: bool = False


@dataclass(slots=True)
class RetrySettings:
    """Retry loop and backoff settings."""

    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    retry_max_backoff_seconds: float = 30.0
    max_total_backoff_seconds: float = 300.0
    retryable_patterns: tuple[str, ...] = DEFAULT_RETRYABLE_PATTERNS


@dataclass(slots=True)
class CircuitBreakerSettings:
    """Circuit breaker guarding repeated terminal failures."""

    enabled: bool = False
    threshold: int = 5
    cooldown_seconds: float = 60.0
    failure_patterns: tuple[str, ...] = DEFAULT_BREAKER_FAILURE_PATTERNS


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    executor: ExecutorSettings = field(default_factory=ExecutorSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = field(default_factory=CircuitBreakerSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with defaults matching the wrapped tool."""

        return cls(
            executor=ExecutorSettings(
                timeout_ms=int(os.getenv("CLI_EXEC_TIMEOUT_MS", "30000")),
                kill_grace_ms=int(os.getenv("CLI_EXEC_KILL_GRACE_MS", "5000")),
                use_shell=_env_bool("CLI_EXEC_USE_SHELL", default=False),
            ),
            retry=RetrySettings(
                max_retries=int(os.getenv("CLI_EXEC_MAX_RETRIES", "3")),
                retry_backoff_seconds=float(
                    os.getenv("CLI_EXEC_RETRY_BACKOFF_SECONDS", "1.0"),
                ),
                retry_max_backoff_seconds=float(
                    os.getenv("CLI_EXEC_RETRY_MAX_BACKOFF_SECONDS", "30.0"),
                ),
                max_total_backoff_seconds=float(
                    os.getenv("CLI_EXEC_MAX_TOTAL_BACKOFF_SECONDS", "300.0"),
                ),
                retryable_patterns=_collect_patterns(
                    "CLI_EXEC_RETRYABLE_PATTERNS",
                    DEFAULT_RETRYABLE_PATTERNS,
                ),
            ),
            circuit_breaker=CircuitBreakerSettings(
                enabled=_env_bool("CLI_EXEC_CIRCUIT_BREAKER", default=False),
                threshold=int(os.getenv("CLI_EXEC_CIRCUIT_BREAKER_THRESHOLD", "5")),
                cooldown_seconds=float(
                    os.getenv("CLI_EXEC_CIRCUIT_BREAKER_COOLDOWN_SECONDS", "60.0"),
                ),
                failure_patterns=_collect_patterns(
                    "CLI_EXEC_CIRCUIT_BREAKER_PATTERNS",
                    DEFAULT_BREAKER_FAILURE_PATTERNS,
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any value is out of range."""

        if self.executor.timeout_ms <= 0:
            raise ValueError("CLI_EXEC_TIMEOUT_MS must be > 0.")
        if self.executor.kill_grace_ms < 0:
            raise ValueError("CLI_EXEC_KILL_GRACE_MS must be >= 0.")
        if self.retry.max_retries < 1:
            raise ValueError("CLI_EXEC_MAX_RETRIES must be >= 1.")
        if self.retry.retry_backoff_seconds < 0:
            raise ValueError("CLI_EXEC_RETRY_BACKOFF_SECONDS must be >= 0.")
        if self.retry.retry_max_backoff_seconds < self.retry.retry_backoff_seconds:
            raise ValueError(
                "CLI_EXEC_RETRY_MAX_BACKOFF_SECONDS must be >= CLI_EXEC_RETRY_BACKOFF_SECONDS.",
            )
        if self.retry.max_total_backoff_seconds < 0:
            raise ValueError("CLI_EXEC_MAX_TOTAL_BACKOFF_SECONDS must be >= 0.")
        _validate_patterns("CLI_EXEC_RETRYABLE_PATTERNS", self.retry.retryable_patterns)
        if self.circuit_breaker.threshold < 1:
            raise ValueError("CLI_EXEC_CIRCUIT_BREAKER_THRESHOLD must be >= 1.")
        if self.circuit_breaker.cooldown_seconds < 0:
            raise ValueError("CLI_EXEC_CIRCUIT_BREAKER_COOLDOWN_SECONDS must be >= 0.")
        _validate_patterns(
            "CLI_EXEC_CIRCUIT_BREAKER_PATTERNS",
            self.circuit_breaker.failure_patterns,
        )


def _collect_patterns(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _validate_patterns(name: str, patterns: tuple[str, ...]) -> None:
    for pattern in patterns:
        try:
            re.compile(pattern)
        except re.error as error:
            raise ValueError(f"Invalid {name} entry: {pattern!r} ({error})") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
