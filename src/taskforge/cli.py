"""TaskForge command-line interface.

    taskforge run [TASK [ARGS...]] run a task and its dependencies
    taskforge list                 list tasks and aliases

Exit codes: 0 on success, 1 when a task fails, 2 on manifest or
resolution errors, 130 when interrupted.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from taskforge.enums import FailurePolicy, TaskState
from taskforge.engine import Engine, RunReport
from taskforge.exceptions import TaskForgeError

EXIT_TASK_FAILED = 1
EXIT_RESOLUTION_ERROR = 2
EXIT_INTERRUPTED = 130

DEFAULT_TASK = "default"

app = typer.Typer(help="taskforge - declarative task runner", no_args_is_help=True)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s %(message)s", force=True)


def _load_engine(manifest: Path | None) -> Engine:
    try:
        return Engine.load(manifest)
    except TaskForgeError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(EXIT_RESOLUTION_ERROR) from e


def _print_summary(report: RunReport) -> None:
    for name, task in report.tasks.items():
        detail = f" ({task.reason})" if task.reason else ""
        if task.state is TaskState.PENDING:
            detail = f" (not run{': ' + task.reason if task.reason else ''})"
        typer.echo(f"  {task.state.value:<9} {name} {task.elapsed:.2f}s{detail}", err=True)


@app.command(
    "run",
    context_settings={
        "allow_extra_args": True,
        "ignore_unknown_options": True,
        "allow_interspersed_args": False,
    },
)
def run_task(
    task: str | None = typer.Argument(
        None, help=f"Task name or alias (defaults to '{DEFAULT_TASK}')"
    ),
    arguments: list[str] | None = typer.Argument(
        None, help="key=value or positional parameters, passed through verbatim"
    ),
    manifest: Path | None = typer.Option(None, "--manifest", "-f", help="Manifest file"),
    parallel: bool | None = typer.Option(
        None, "--parallel/--sequential", help="Group independent tasks into parallel steps"
    ),
    continue_on_failure: bool = typer.Option(
        False, "--continue-on-failure", help="Let parallel siblings finish after a failure"
    ),
    max_parallel: int | None = typer.Option(None, "--max-parallel", min=1),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Print commands without running"),
) -> None:
    """Run a task after the tasks it depends on.

    Options go before TASK; everything after it is passed to the task.
    """
    engine = _load_engine(manifest)
    arguments = arguments or []
    if task is None:
        if DEFAULT_TASK not in engine.registry:
            typer.echo(f"error: no task given and no '{DEFAULT_TASK}' task defined", err=True)
            raise typer.Exit(EXIT_RESOLUTION_ERROR)
        task = DEFAULT_TASK

    try:
        if dry_run:
            prepared = engine.prepare(task, arguments, parallel=parallel)
            for step in prepared.plan:
                prefix = "parallel: " if step.is_parallel else ""
                typer.echo(f"# {prefix}{', '.join(step.names)}")
                for name in step.names:
                    for command in prepared.resolved[name].commands:
                        typer.echo(command)
            return

        report = asyncio.run(
            engine.run(
                task,
                arguments,
                parallel=parallel,
                failure_policy=FailurePolicy.CONTINUE if continue_on_failure else None,
                max_parallel=max_parallel,
            )
        )
    except TaskForgeError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(EXIT_RESOLUTION_ERROR) from e
    except KeyboardInterrupt:
        typer.echo("interrupted", err=True)
        raise typer.Exit(EXIT_INTERRUPTED)

    if not report.succeeded:
        _print_summary(report)
        raise typer.Exit(EXIT_TASK_FAILED)


@app.command("list")
def list_tasks(
    manifest: Path | None = typer.Option(None, "--manifest", "-f", help="Manifest file"),
) -> None:
    """List tasks with their aliases and descriptions."""
    engine = _load_engine(manifest)
    for definition in engine.list_tasks():
        names = definition.name
        if definition.aliases:
            names += f" ({', '.join(definition.aliases)})"
        params = " ".join(
            f"{p.name}={p.default!r}" if p.default is not None else p.name
            for p in definition.parameters
        )
        if params:
            names += f" [{params}]"
        line = f"{names:<32} {definition.description}".rstrip()
        typer.echo(line)


if __name__ == "__main__":
    app()
