"""TaskForge Engine for orchestrating task invocations.

This module provides the Engine class that ties the pieces together for one
invocation: resolve the requested task, bind its parameters, build the
execution plan, resolve every template and hand the plan to the executor.
All resolution errors are raised before any subprocess starts.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from taskforge.config.models import EngineSettings
from taskforge.enums import FailurePolicy
from taskforge.tasks.definition import TaskDefinition
from taskforge.tasks.registry import TaskRegistry

from .executor import Executor, RunReport
from .planner import DependencyResolver, ExecutionPlan
from .runner import CommandRunner, SubprocessRunner
from .staleness import ChecksumStore, StalenessOracle
from .variables import ResolvedTask, VariableResolver

if TYPE_CHECKING:
    from taskforge.config.loader import Manifest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedRun:
    """A fully resolved invocation, ready to execute.

    Attributes:
        plan: The execution plan.
        resolved: Resolved task per planned task name.
        context: Variables visible to every task.
    """

    plan: ExecutionPlan
    resolved: Mapping[str, ResolvedTask]
    context: Mapping[str, str]

    def commands(self) -> list[tuple[str, str]]:
        """Return (task name, command) pairs in plan order."""
        return [
            (name, command)
            for name in self.plan.names
            for command in self.resolved[name].commands
        ]


class Engine:
    """Main orchestrator for task invocations.

    The Engine owns an explicitly constructed, sealed TaskRegistry and the
    in-memory checksum store, so repeated runs within one process can skip
    tasks whose inputs did not change.

    Example:
        >>> engine = Engine.load("Taskfile.yml")
        >>> report = asyncio.run(engine.run("docs", ["PORT=8080"]))
        >>> report.succeeded
        True
    """

    def __init__(
        self,
        registry: TaskRegistry,
        variables: Mapping[str, str] | None = None,
        root_dir: Path | None = None,
        settings: EngineSettings | None = None,
        runner: CommandRunner | None = None,
        checksum_store: ChecksumStore | None = None,
    ) -> None:
        """Initialize the Engine.

        Args:
            registry: Task definitions available to this engine.
            variables: Manifest-level variable templates.
            root_dir: Directory tasks run in. Defaults to the current directory.
            settings: Default execution settings.
            runner: Command runner; defaults to SubprocessRunner.
            checksum_store: Store of input checksums from successful runs.
        """
        if not registry.sealed:
            registry.seal()
        self._registry = registry
        self._variables = VariableResolver(variables, root_dir)
        self._planner = DependencyResolver(registry)
        self._settings = settings or EngineSettings()
        self._runner = runner or SubprocessRunner()
        self._oracle = StalenessOracle(checksum_store)

    @classmethod
    def from_manifest(
        cls,
        manifest: Manifest,
        runner: CommandRunner | None = None,
    ) -> Engine:
        """Create an engine from a loaded manifest.

        Raises:
            DuplicateTaskError: If task names or aliases collide.
        """
        return cls(
            registry=TaskRegistry.from_definitions(manifest.tasks),
            variables=manifest.variables,
            root_dir=manifest.root_dir,
            settings=manifest.settings,
            runner=runner,
        )

    @classmethod
    def load(
        cls,
        manifest_path: str | Path | None = None,
        runner: CommandRunner | None = None,
    ) -> Engine:
        """Load a manifest file, searching from the cwd if no path is given.

        Raises:
            ManifestError: If no manifest is found or it is malformed.
        """
        from taskforge.config.loader import ManifestLoader

        loader = ManifestLoader()
        path = Path(manifest_path) if manifest_path else loader.find()
        manifest = loader.load(path)
        logger.info("Loaded %d task(s) from %s", len(manifest.tasks), path)
        return cls.from_manifest(manifest, runner=runner)

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def oracle(self) -> StalenessOracle:
        return self._oracle

    def list_tasks(self) -> list[TaskDefinition]:
        """Return every task definition sorted by name."""
        return list(self._registry)

    def prepare(
        self,
        task_name: str,
        arguments: Sequence[str] = (),
        parallel: bool | None = None,
    ) -> PreparedRun:
        """Resolve an invocation without running anything.

        Args:
            task_name: Task name or alias.
            arguments: ``key=value`` or positional invocation arguments.
            parallel: Override the manifest's parallel setting.

        Returns:
            The prepared run.

        Raises:
            UnknownTaskError: If the task or a dependency does not exist.
            CyclicDependencyError: If the dependency graph has a cycle.
            UnknownParameterError: If an argument matches no parameter.
            UnresolvedPlaceholderError: If a template has no binding.
        """
        root = self._registry.resolve(task_name)
        supplied, overrides = self._variables.parse_arguments(root, arguments)
        root_bindings = self._variables.bind(root, supplied)
        context = self._variables.global_context(overrides)

        use_parallel = self._settings.parallel if parallel is None else parallel
        plan = self._planner.plan(root.name, parallel=use_parallel)

        resolved: dict[str, ResolvedTask] = {}
        for task in plan.tasks:
            bindings = root_bindings if task.name == root.name else self._variables.bind(task)
            resolved[task.name] = self._variables.resolve(task, bindings, context)

        return PreparedRun(plan=plan, resolved=resolved, context=context)

    async def run(
        self,
        task_name: str,
        arguments: Sequence[str] = (),
        *,
        parallel: bool | None = None,
        failure_policy: FailurePolicy | None = None,
        max_parallel: int | None = None,
    ) -> RunReport:
        """Resolve and execute a task with its dependencies.

        Keyword arguments override the manifest settings for this run.

        Returns:
            The run report; inspect ``succeeded`` for the overall outcome.

        Raises:
            TaskForgeError: For any resolution error, before anything runs.
        """
        prepared = self.prepare(task_name, arguments, parallel=parallel)
        logger.info(
            "Plan for '%s': %s",
            prepared.plan.root,
            " -> ".join(", ".join(step.names) for step in prepared.plan),
        )

        executor = Executor(
            runner=self._runner,
            oracle=self._oracle,
            failure_policy=failure_policy or self._settings.failure_policy,
            max_parallel=max_parallel or self._settings.max_parallel,
            capture_output=self._settings.capture_output,
        )
        return await executor.execute(prepared.plan, prepared.resolved)
