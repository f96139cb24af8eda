"""Retry coordinator driving bounded exponential backoff around the executor."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Protocol

from cli_exec.config import (
    DEFAULT_BREAKER_FAILURE_PATTERNS,
    CircuitBreakerSettings,
    RetrySettings,
    Settings,
)
from cli_exec.executor import CommandExecutor
from cli_exec.failure_classifier import classify_failure, counts_toward_breaker
from cli_exec.models import Command, ExecutionOutcome, FailureKind, RetryState

logger = logging.getLogger(__name__)


class Executor(Protocol):
    """Anything able to run one command attempt."""

    def execute(
        self,
        command: Command,
        cancel: threading.Event | None = None,
    ) -> ExecutionOutcome:
        """Run one attempt and return its outcome."""


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Reject calls for a cooldown period after repeated tool-level failures."""

    def __init__(
        self,
        *,
        threshold: int = 5,
        cooldown_seconds: float = 60.0,
        failure_patterns: tuple[str, ...] = DEFAULT_BREAKER_FAILURE_PATTERNS,
        clock=time.monotonic,
    ) -> None:
        self.threshold = threshold
        self.cooldown_seconds = cooldown_seconds
        self.failure_patterns = failure_patterns
        self._clock = clock
        self._lock = threading.Lock()
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self._opened_at = 0.0

    @classmethod
    def from_settings(cls, settings: CircuitBreakerSettings) -> CircuitBreaker:
        return cls(
            threshold=settings.threshold,
            cooldown_seconds=settings.cooldown_seconds,
            failure_patterns=settings.failure_patterns,
        )

    def check(self) -> str | None:
        """Return a rejection reason while open, None when the call may proceed."""

        with self._lock:
            if self.state is not CircuitState.OPEN:
                return None
            elapsed = self._clock() - self._opened_at
            if elapsed >= self.cooldown_seconds:
                self.state = CircuitState.HALF_OPEN
                return None
            remaining = self.cooldown_seconds - elapsed
            return (
                "Command temporarily unavailable due to repeated failures. "
                f"Will retry after {remaining:.0f} seconds."
            )

    def record_success(self) -> None:
        with self._lock:
            self.failure_count = 0
            self.state = CircuitState.CLOSED

    def counts(self, outcome: ExecutionOutcome) -> bool:
        return counts_toward_breaker(outcome.failure, outcome.error, self.failure_patterns)

    def record_failure(self) -> None:
        with self._lock:
            self.failure_count += 1
            if self.state is CircuitState.HALF_OPEN or self.failure_count >= self.threshold:
                if self.state is not CircuitState.OPEN:
                    logger.warning(
                        "Circuit breaker opened after %d consecutive failures",
                        self.failure_count,
                    )
                self.state = CircuitState.OPEN
                self._opened_at = self._clock()


def backoff_delay(attempt: int, settings: RetrySettings) -> float:
    """Delay before the attempt following ``attempt``: base * 2**(attempt-1), capped."""

    delay = settings.retry_backoff_seconds * (2 ** max(attempt - 1, 0))
    return min(delay, settings.retry_max_backoff_seconds)


class RetryCoordinator:
    """Wrap an executor with failure classification and exponential backoff."""

    def __init__(
        self,
        executor: Executor,
        settings: RetrySettings | None = None,
        *,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self.executor = executor
        self.settings = settings or RetrySettings()
        self.breaker = breaker

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryCoordinator:
        """Wire a subprocess executor, retry policy and optional breaker from settings."""

        breaker = None
        if settings.circuit_breaker.enabled:
            breaker = CircuitBreaker.from_settings(settings.circuit_breaker)
        return cls(CommandExecutor(settings.executor), settings.retry, breaker=breaker)

    def execute_with_retry(
        self,
        command: Command,
        cancel: threading.Event | None = None,
    ) -> ExecutionOutcome:
        """Run the command until success, a terminal failure or exhausted attempts."""

        settings = self.settings
        if self.breaker is not None:
            rejection = self.breaker.check()
            if rejection is not None:
                logger.warning("Command %s rejected: %s", command.program, rejection)
                return ExecutionOutcome.failed(rejection, failure=FailureKind.CIRCUIT_OPEN)

        outcome = self._run_attempts(command, cancel, settings)

        if self.breaker is not None:
            if outcome.succeeded:
                self.breaker.record_success()
            elif self.breaker.counts(outcome):
                self.breaker.record_failure()
        return outcome

    def _run_attempts(
        self,
        command: Command,
        cancel: threading.Event | None,
        settings: RetrySettings,
    ) -> ExecutionOutcome:
        state = RetryState(max_attempts=max(1, settings.max_retries))

        while True:
            state.attempt += 1
            try:
                outcome = self.executor.execute(command, cancel)
            except Exception as error:  # noqa: BLE001
                logger.warning(
                    "Command execution error (attempt %d/%d): %s",
                    state.attempt,
                    state.max_attempts,
                    error,
                )
                if not state.has_attempts_left:
                    return ExecutionOutcome.failed(
                        f"Failed after {state.max_attempts} attempts: {error}",
                        failure=FailureKind.RETRIES_EXHAUSTED,
                    )
                outcome = ExecutionOutcome.failed(
                    f"Failed to execute command: {error}",
                    failure=FailureKind.SPAWN_FAILED,
                )
            state.last_outcome = outcome

            if outcome.succeeded:
                if state.attempt > 1:
                    logger.info(
                        "Command %s succeeded after %d attempts",
                        command.program,
                        state.attempt,
                    )
                return outcome

            classification = classify_failure(outcome.error, settings.retryable_patterns)
            if not classification.retryable:
                logger.info(
                    "Command %s failed with non-retryable error: %s",
                    command.program,
                    outcome.error,
                )
                return outcome
            if not state.has_attempts_left:
                logger.info(
                    "Command %s failed after %d attempts: %s",
                    command.program,
                    state.attempt,
                    outcome.error,
                )
                return outcome

            delay = backoff_delay(state.attempt, settings)
            if state.total_backoff_seconds + delay > settings.max_total_backoff_seconds:
                logger.info(
                    "Maximum total backoff (%.1fs) would be exceeded, stopping retries",
                    settings.max_total_backoff_seconds,
                )
                return outcome

            logger.info(
                "Command %s failed (attempt %d/%d, matched %r), retrying in %.1fs",
                command.program,
                state.attempt,
                state.max_attempts,
                classification.matched_pattern,
                delay,
            )
            if _wait_cancelled(cancel, delay):
                logger.info("Command %s retry loop cancelled during backoff", command.program)
                return outcome
            state.total_backoff_seconds += delay


def _wait_cancelled(cancel: threading.Event | None, delay: float) -> bool:
    """Sleep for ``delay`` seconds; return True as soon as ``cancel`` fires."""

    if cancel is None:
        time.sleep(delay)
        return False
    return cancel.wait(delay)
