"""Subprocess-based executor supervising one external command attempt."""

from __future__ import annotations

import contextlib
import logging
import os
import subprocess
import threading
import time
from collections.abc import Callable
from typing import IO, Any

from cli_exec.config import ExecutorSettings
from cli_exec.models import (
    NO_EXIT_CODE,
    AttemptState,
    Command,
    ExecutionOutcome,
    FailureKind,
)
from cli_exec.sanitization import sanitize_arguments

logger = logging.getLogger(__name__)

SpawnFn = Callable[..., Any]
Clock = Callable[[], float]

_READ_CHUNK_BYTES = 64 * 1024
_POLL_INTERVAL_SECONDS = 0.05
_KILL_WAIT_SECONDS = 2.0


class _Resolution:
    """Single-assignment outcome cell shared by the racing branches."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self.state = AttemptState.SPAWNED
        self.outcome: ExecutionOutcome | None = None

    def mark_running(self) -> None:
        with self._lock:
            if self.state is AttemptState.SPAWNED:
                self.state = AttemptState.RUNNING

    def resolve(self, state: AttemptState, outcome: ExecutionOutcome) -> bool:
        """Store the outcome if nothing resolved yet; report whether this call won."""

        with self._lock:
            if self._done.is_set():
                return False
            self.state = state
            self.outcome = outcome
            self._done.set()
            return True

    def wait(self, timeout: float) -> bool:
        return self._done.wait(timeout)

    def result(self) -> ExecutionOutcome:
        if self.outcome is None:
            raise RuntimeError("Attempt has not resolved yet")
        return self.outcome


class CommandExecutor:
    """Run one command as a child process racing exit, timeout and cancellation."""

    def __init__(
        self,
        settings: ExecutorSettings | None = None,
        *,
        spawn: SpawnFn = subprocess.Popen,
        clock: Clock = time.monotonic,
        poll_interval_seconds: float = _POLL_INTERVAL_SECONDS,
    ) -> None:
        self.settings = settings or ExecutorSettings()
        self._spawn = spawn
        self._clock = clock
        self._poll_interval = poll_interval_seconds

    def execute(
        self,
        command: Command,
        cancel: threading.Event | None = None,
    ) -> ExecutionOutcome:
        """Run the command once and return its outcome; never raises."""

        settings = self.settings
        timeout_ms = command.timeout_ms if command.timeout_ms is not None else settings.timeout_ms
        args = sanitize_arguments(command.arguments)
        started = self._clock()

        if cancel is not None and cancel.is_set():
            logger.info("Command %s cancelled before start", command.program)
            return _cancelled_outcome(duration_seconds=0.0)

        env = os.environ.copy()
        env.update(command.env)
        run_args: str | list[str]
        if settings.use_shell:
            run_args = " ".join([command.program, *args])
        else:
            run_args = [command.program, *args]

        logger.debug("Executing command: %s %s", command.program, " ".join(args))
        try:
            process = self._spawn(  # noqa: S603
                run_args,
                env=env,
                cwd=str(command.cwd) if command.cwd is not None else None,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                shell=settings.use_shell,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as error:
            logger.warning("Command %s failed to start: %s", command.program, error)
            return ExecutionOutcome.failed(
                f"Failed to execute command: {error}",
                failure=FailureKind.SPAWN_FAILED,
                duration_seconds=self._clock() - started,
            )

        attempt = _Attempt(
            process=process,
            clock=self._clock,
            started=started,
        )
        attempt.start(input_text=command.input)

        deadline = started + timeout_ms / 1000
        resolution = attempt.resolution
        while not resolution.wait(self._poll_interval):
            now = self._clock()
            if cancel is not None and cancel.is_set():
                if resolution.resolve(
                    AttemptState.CANCELLED,
                    _cancelled_outcome(duration_seconds=now - started),
                ):
                    logger.warning("Command %s was cancelled", command.program)
            elif now >= deadline:
                if resolution.resolve(
                    AttemptState.TIMED_OUT,
                    ExecutionOutcome.failed(
                        f"Command timed out after {timeout_ms}ms",
                        failure=FailureKind.TIMEOUT,
                        duration_seconds=now - started,
                    ),
                ):
                    logger.warning(
                        "Command %s timed out after %dms",
                        command.program,
                        timeout_ms,
                    )

        if resolution.state is not AttemptState.COMPLETED:
            start_teardown(process, grace_seconds=settings.kill_grace_ms / 1000)

        return resolution.result()


class _Attempt:
    """Per-attempt stream pumps and exit watcher feeding one resolution cell."""

    def __init__(self, *, process: Any, clock: Clock, started: float) -> None:
        self.process = process
        self.resolution = _Resolution()
        self._clock = clock
        self._started = started
        self._stdout_chunks: list[bytes] = []
        self._stderr_chunks: list[bytes] = []
        self._readers: list[threading.Thread] = []

    def start(self, *, input_text: str | None) -> None:
        for stream, sink, name in (
            (self.process.stdout, self._stdout_chunks, "stdout"),
            (self.process.stderr, self._stderr_chunks, "stderr"),
        ):
            if stream is None:
                continue
            reader = threading.Thread(
                target=_pump_stream,
                args=(stream, sink),
                daemon=True,
                name=f"cli-exec-{name}",
            )
            reader.start()
            self._readers.append(reader)

        self.resolution.mark_running()

        threading.Thread(
            target=_write_input,
            args=(self.process.stdin, input_text),
            daemon=True,
            name="cli-exec-stdin",
        ).start()

        threading.Thread(
            target=self._wait_for_exit,
            daemon=True,
            name="cli-exec-waiter",
        ).start()

    def _wait_for_exit(self) -> None:
        try:
            returncode = self.process.wait()
        except Exception as error:  # noqa: BLE001
            self.resolution.resolve(
                AttemptState.SPAWN_FAILED,
                ExecutionOutcome.failed(
                    f"Failed to execute command: {error}",
                    failure=FailureKind.SPAWN_FAILED,
                    duration_seconds=self._clock() - self._started,
                ),
            )
            return

        for reader in self._readers:
            reader.join()

        self.resolution.resolve(
            AttemptState.COMPLETED,
            exit_outcome(
                returncode,
                stdout=_decode(self._stdout_chunks),
                stderr=_decode(self._stderr_chunks),
                duration_seconds=self._clock() - self._started,
            ),
        )


def exit_outcome(
    returncode: int | None,
    *,
    stdout: str,
    stderr: str,
    duration_seconds: float = 0.0,
) -> ExecutionOutcome:
    """Map a natural process exit to an outcome."""

    if returncode == 0:
        return ExecutionOutcome.success(stdout.strip(), duration_seconds=duration_seconds)

    error = stderr.strip() or stdout.strip() or f"Process exited with code {returncode}"
    exit_code = returncode if returncode is not None and returncode > 0 else NO_EXIT_CODE
    return ExecutionOutcome.failed(
        error,
        failure=FailureKind.EXIT_NON_ZERO,
        exit_code=exit_code,
        duration_seconds=duration_seconds,
    )


def start_teardown(process: Any, *, grace_seconds: float) -> threading.Thread:
    """Terminate the process in the background, escalating to kill after the grace window."""

    thread = threading.Thread(
        target=_terminate_process,
        args=(process, grace_seconds),
        daemon=True,
        name="cli-exec-teardown",
    )
    thread.start()
    return thread


def _terminate_process(process: Any, grace_seconds: float) -> None:
    try:
        exited = _stop_process(process, grace_seconds)
    except Exception as error:  # noqa: BLE001
        logger.warning(
            "Error stopping process %s: %s",
            getattr(process, "pid", "?"),
            error,
        )
        return
    if exited:
        _close_pipes(process)


def _stop_process(process: Any, grace_seconds: float) -> bool:
    """Terminate, then kill after the grace window; report whether the process exited."""

    if process.poll() is not None:
        return True
    try:
        process.terminate()
    except OSError:
        return process.poll() is not None
    try:
        process.wait(timeout=grace_seconds)
        return True
    except subprocess.TimeoutExpired:
        logger.warning(
            "Process %s ignored termination for %.1fs; killing",
            getattr(process, "pid", "?"),
            grace_seconds,
        )
    try:
        process.kill()
    except OSError:
        return process.poll() is not None
    try:
        process.wait(timeout=_KILL_WAIT_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Process %s still running after kill", getattr(process, "pid", "?"))
        return False
    return True


def _close_pipes(process: Any) -> None:
    for stream in (process.stdout, process.stderr):
        if stream is not None:
            with contextlib.suppress(OSError, ValueError):
                stream.close()


def _pump_stream(stream: IO[bytes], sink: list[bytes]) -> None:
    try:
        while True:
            chunk = stream.read1(_READ_CHUNK_BYTES)  # type: ignore[attr-defined]
            if not chunk:
                return
            sink.append(chunk)
    except (OSError, ValueError):
        logger.debug("Output stream closed while reading", exc_info=True)
    finally:
        with contextlib.suppress(OSError, ValueError):
            stream.close()


def _write_input(stdin: IO[bytes] | None, input_text: str | None) -> None:
    if stdin is None:
        return
    try:
        if input_text is not None:
            stdin.write(input_text.encode("utf-8"))
    except (OSError, ValueError) as error:
        logger.warning("Error writing command input to stdin: %s", error)
    finally:
        with contextlib.suppress(OSError, ValueError):
            stdin.close()


def _decode(chunks: list[bytes]) -> str:
    return b"".join(chunks).decode("utf-8", errors="replace")


def _cancelled_outcome(*, duration_seconds: float) -> ExecutionOutcome:
    return ExecutionOutcome.failed(
        "Command was aborted",
        failure=FailureKind.CANCELLED,
        duration_seconds=duration_seconds,
    )
