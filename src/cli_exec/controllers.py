"""Controller behind the ``cli-exec run`` command."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path

from cli_exec.config import Settings
from cli_exec.models import Command, ExecutionOutcome
from cli_exec.retry import RetryCoordinator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunCommand:
    """CLI input for one supervised command run."""

    program: str
    arguments: tuple[str, ...]
    input: str | None = None
    timeout_ms: int | None = None
    max_retries: int | None = None
    retry: bool = True
    cwd: Path | None = None
    env: tuple[str, ...] = ()
    use_shell: bool | None = None


@dataclass(slots=True)
class RunResult:
    """Run report to render in CLI."""

    lines: list[str]
    success: bool
    exit_code: int


class ExecCliController:
    """Builds the executor stack from settings and runs one command."""

    def run(self, command: RunCommand, *, cancel: threading.Event | None = None) -> RunResult:
        settings = Settings.from_env()
        if command.max_retries is not None:
            settings.retry = replace(settings.retry, max_retries=command.max_retries)
        if not command.retry:
            settings.retry = replace(settings.retry, max_retries=1)
        if command.use_shell is not None:
            settings.executor = replace(settings.executor, use_shell=command.use_shell)
        settings.validate()

        request = Command(
            program=command.program,
            arguments=command.arguments,
            input=command.input,
            timeout_ms=command.timeout_ms,
            cwd=command.cwd,
            env=parse_env_overrides(command.env),
        )
        coordinator = RetryCoordinator.from_settings(settings)
        cancel = cancel or threading.Event()
        with _cancel_on_signals(cancel):
            outcome = coordinator.execute_with_retry(request, cancel)
        return _render(outcome)


def parse_env_overrides(values: tuple[str, ...]) -> dict[str, str]:
    """Parse ``KEY=VALUE`` pairs into an environment override mapping."""

    overrides: dict[str, str] = {}
    for value in values:
        key, sep, raw = value.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid environment override: {value!r}. Expected KEY=VALUE.")
        overrides[key] = raw
    return overrides


def _render(outcome: ExecutionOutcome) -> RunResult:
    if outcome.succeeded:
        lines = [outcome.output] if outcome.output else []
        return RunResult(lines=lines, success=True, exit_code=outcome.exit_code)
    kind = outcome.failure.value if outcome.failure is not None else "unknown"
    return RunResult(
        lines=[f"{kind}: {outcome.error}"],
        success=False,
        exit_code=outcome.exit_code,
    )


@contextmanager
def _cancel_on_signals(cancel: threading.Event) -> Iterator[None]:
    if not hasattr(signal, "SIGINT") or threading.current_thread() is not threading.main_thread():
        yield
        return

    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _handler(signum: int, _: object | None) -> None:
        logger.info("Received %s, cancelling command", signal.Signals(signum).name)
        cancel.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)
