"""Shared test fixtures."""

from __future__ import annotations

import sys
from collections.abc import Callable

import pytest

from cli_exec.models import Command

_ECHO_TOOL_ARGS = ("-m", "cli_exec.echo_tool")


@pytest.fixture()
def echo_command() -> Callable[..., Command]:
    """Build a Command running the local echo tool with extra arguments."""

    def _build(*args: str, **kwargs) -> Command:
        return Command(program=sys.executable, arguments=(*_ECHO_TOOL_ARGS, *args), **kwargs)

    return _build
