"""Domain models for supervised command execution."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType

NO_EXIT_CODE = -1


class FailureKind(str, Enum):
    """Normalized failure taxonomy carried by failed outcomes."""

    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    SPAWN_FAILED = "spawn_failed"
    EXIT_NON_ZERO = "exit_non_zero"
    RETRIES_EXHAUSTED = "retries_exhausted"
    CIRCUIT_OPEN = "circuit_open"


class AttemptState(str, Enum):
    """Lifecycle of one spawn attempt."""

    SPAWNED = "spawned"
    RUNNING = "running"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    SPAWN_FAILED = "spawn_failed"


@dataclass(frozen=True, slots=True)
class Command:
    """One external command invocation request."""

    program: str
    arguments: tuple[str, ...] = ()
    input: str | None = None
    timeout_ms: int | None = None
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze caller-provided containers so later mutation cannot leak in.
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    """Terminal result of one attempt; exactly one of output/error is set."""

    succeeded: bool
    exit_code: int
    output: str | None = None
    error: str | None = None
    failure: FailureKind | None = None
    duration_seconds: float = 0.0

    @classmethod
    def success(
        cls,
        output: str,
        *,
        exit_code: int = 0,
        duration_seconds: float = 0.0,
    ) -> ExecutionOutcome:
        return cls(
            succeeded=True,
            exit_code=exit_code,
            output=output,
            duration_seconds=duration_seconds,
        )

    @classmethod
    def failed(
        cls,
        error: str,
        *,
        failure: FailureKind,
        exit_code: int = NO_EXIT_CODE,
        duration_seconds: float = 0.0,
    ) -> ExecutionOutcome:
        return cls(
            succeeded=False,
            exit_code=exit_code,
            error=error,
            failure=failure,
            duration_seconds=duration_seconds,
        )


@dataclass(slots=True)
class RetryState:
    """Progress of one logical retry-wrapped call."""

    max_attempts: int
    attempt: int = 0
    last_outcome: ExecutionOutcome | None = None
    total_backoff_seconds: float = 0.0

    @property
    def has_attempts_left(self) -> bool:
        return self.attempt < self.max_attempts
