from __future__ import annotations

import sys

import allure
import pytest
from click.testing import CliRunner

from cli_exec.controllers import parse_env_overrides
from cli_exec.main import cli_exec

pytestmark = [
    allure.epic("Command Execution"),
    allure.feature("CLI"),
]

_ECHO_TOOL = [sys.executable, "-m", "cli_exec.echo_tool"]


def test_cli_run_prints_command_output() -> None:
    result = CliRunner().invoke(cli_exec, ["run", *_ECHO_TOOL, "--stdout", "hi there"])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "hi there"


def test_cli_run_reports_failure_without_retrying() -> None:
    result = CliRunner().invoke(
        cli_exec,
        ["run", "--no-retry", *_ECHO_TOOL, "--stderr", "Invalid API key", "--exit-code", "2"],
    )

    assert result.exit_code == 1
    assert "exit_non_zero: Invalid API key" in result.output


def test_cli_run_applies_timeout_and_env(monkeypatch) -> None:
    monkeypatch.setenv("CLI_EXEC_MAX_RETRIES", "1")

    timed_out = CliRunner().invoke(
        cli_exec,
        ["run", "--timeout-ms", "300", *_ECHO_TOOL, "--sleep", "10"],
    )
    with_env = CliRunner().invoke(
        cli_exec,
        ["run", "--env", "CLI_EXEC_CLI_VALUE=7", *_ECHO_TOOL, "--print-env", "CLI_EXEC_CLI_VALUE"],
    )

    assert timed_out.exit_code == 1
    assert "Command timed out after 300ms" in timed_out.output
    assert with_env.exit_code == 0, with_env.output
    assert with_env.output.strip() == "CLI_EXEC_CLI_VALUE=7"


def test_cli_run_rejects_malformed_env_override() -> None:
    result = CliRunner().invoke(cli_exec, ["run", "--env", "NOVALUE", *_ECHO_TOOL])

    assert result.exit_code == 2
    assert "Expected KEY=VALUE" in result.output


def test_parse_env_overrides_keeps_equals_in_value() -> None:
    assert parse_env_overrides(("A=1", "B=x=y", "C=")) == {"A": "1", "B": "x=y", "C": ""}

    with pytest.raises(ValueError, match="Invalid environment override"):
        parse_env_overrides(("=oops",))
