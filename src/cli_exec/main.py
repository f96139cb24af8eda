"""CLI entrypoint for cli-exec."""

import logging
from pathlib import Path

import rich_click as click

from cli_exec import __version__
from cli_exec.controllers import ExecCliController, RunCommand

click.rich_click.USE_MARKDOWN = True
EXEC_CONTROLLER = ExecCliController()


@click.group()
@click.version_option(version=__version__, prog_name="cli-exec")
@click.option(
    "--log-level",
    type=click.Choice(["error", "warning", "info", "debug"], case_sensitive=False),
    default="warning",
    show_default=True,
    help="Logging verbosity.",
)
def cli_exec(log_level: str) -> None:
    """Supervised external command execution."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@cli_exec.command(
    "run",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=1),
    default=None,
    help="Per-attempt timeout. Defaults to CLI_EXEC_TIMEOUT_MS.",
)
@click.option(
    "--retries",
    "max_retries",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum attempts. Defaults to CLI_EXEC_MAX_RETRIES.",
)
@click.option("--no-retry", is_flag=True, default=False, help="Run a single attempt.")
@click.option("--input", "input_text", default=None, help="Text written to the command's stdin.")
@click.option(
    "--cwd",
    type=click.Path(path_type=Path, file_okay=False, exists=True),
    default=None,
    help="Working directory for the command.",
)
@click.option(
    "--env",
    "env",
    multiple=True,
    help="Environment override as KEY=VALUE. Can be repeated.",
)
@click.option(
    "--shell/--no-shell",
    "use_shell",
    default=None,
    help="Run through the shell. Defaults to CLI_EXEC_USE_SHELL.",
)
@click.argument("program")
@click.argument("arguments", nargs=-1, type=click.UNPROCESSED)
def run(  # noqa: PLR0913
    timeout_ms: int | None,
    max_retries: int | None,
    no_retry: bool,
    input_text: str | None,
    cwd: Path | None,
    env: tuple[str, ...],
    use_shell: bool | None,
    program: str,
    arguments: tuple[str, ...],
) -> None:
    """Run PROGRAM with ARGUMENTS, retrying transient failures."""

    try:
        result = EXEC_CONTROLLER.run(
            RunCommand(
                program=program,
                arguments=arguments,
                input=input_text,
                timeout_ms=timeout_ms,
                max_retries=max_retries,
                retry=not no_retry,
                cwd=cwd,
                env=env,
                use_shell=use_shell,
            ),
        )
    except ValueError as error:
        raise click.UsageError(str(error)) from error

    if not result.success:
        raise click.ClickException("\n".join(result.lines))
    _emit_lines(result.lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    cli_exec()
