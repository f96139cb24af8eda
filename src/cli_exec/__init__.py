"""Supervised external-command execution with timeouts, cancellation and retries."""

from cli_exec.config import Settings
from cli_exec.executor import CommandExecutor
from cli_exec.failure_classifier import classify_failure
from cli_exec.models import Command, ExecutionOutcome, FailureKind
from cli_exec.retry import CircuitBreaker, RetryCoordinator
from cli_exec.sanitization import sanitize_arguments

__version__ = "0.1.0"

__all__ = [
    "CircuitBreaker",
    "Command",
    "CommandExecutor",
    "ExecutionOutcome",
    "FailureKind",
    "RetryCoordinator",
    "Settings",
    "__version__",
    "classify_failure",
    "sanitize_arguments",
]
