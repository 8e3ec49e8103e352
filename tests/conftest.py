"""Shared pytest fixtures for TaskForge tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from taskforge.engine.runner import CommandResult
from taskforge.engine.variables import ResolvedTask, VariableResolver
from taskforge.exceptions import LaunchError
from taskforge.tasks import TaskDefinition, TaskRegistry


class FakeRunner:
    """Command runner that records commands instead of spawning processes.

    Args:
        exit_codes: Exit status per command (default 0).
        delays: Seconds to sleep per command before finishing.
        launch_failures: Commands that raise LaunchError.
    """

    def __init__(
        self,
        exit_codes: dict[str, int] | None = None,
        delays: dict[str, float] | None = None,
        launch_failures: tuple[str, ...] = (),
    ) -> None:
        self.exit_codes = exit_codes or {}
        self.delays = delays or {}
        self.launch_failures = launch_failures
        self.commands: list[str] = []
        self.finished: list[str] = []
        self.cancelled: list[str] = []
        self.cwds: list[Path] = []
        self.events: list[tuple[str, str]] = []

    async def run(self, command: str, cwd: Path, capture: bool = False) -> CommandResult:
        self.commands.append(command)
        self.events.append(("start", command))
        self.cwds.append(cwd)
        if command in self.launch_failures:
            raise LaunchError(command, "command not found")
        delay = self.delays.get(command, 0.0)
        try:
            if delay:
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self.cancelled.append(command)
            raise
        self.finished.append(command)
        self.events.append(("end", command))
        return CommandResult(command, self.exit_codes.get(command, 0), None, delay)


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Fake runner where every command succeeds."""
    return FakeRunner()


@pytest.fixture
def make_registry() -> Callable[..., TaskRegistry]:
    """Build a sealed registry from task definitions."""

    def _make(*definitions: TaskDefinition) -> TaskRegistry:
        return TaskRegistry.from_definitions(definitions)

    return _make


@pytest.fixture
def resolve_task(tmp_path: Path) -> Callable[[TaskDefinition], ResolvedTask]:
    """Resolve a task definition with no bindings, rooted in tmp_path."""
    resolver = VariableResolver(root_dir=tmp_path)

    def _resolve(task: TaskDefinition) -> ResolvedTask:
        return resolver.resolve(task, resolver.bind(task), resolver.global_context())

    return _resolve


@pytest.fixture
def write_manifest(tmp_path: Path) -> Callable[[str], Path]:
    """Write YAML content to tmp_path/Taskfile.yml and return its path."""

    def _write(content: str, name: str = "Taskfile.yml") -> Path:
        path = tmp_path / name
        path.write_text(content)
        return path

    return _write


@pytest.fixture
def make_runner() -> Callable[..., FakeRunner]:
    """Factory for fake runners with custom exit codes, delays and failures."""
    return FakeRunner
