"""TaskForge dependency resolver for building execution plans.

This module expands a requested task into an ExecutionPlan: a depth-first,
post-order walk of the dependency graph so that every dependency comes
before the task that declares it, each task appears at most once, and
cycles are reported with the offending path.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

from taskforge.exceptions import CyclicDependencyError, UnknownTaskError
from taskforge.tasks.definition import TaskDefinition
from taskforge.tasks.registry import TaskRegistry

logger = logging.getLogger(__name__)


class _Mark(Enum):
    GRAY = "gray"
    BLACK = "black"


@dataclass(frozen=True)
class PlanStep:
    """One entry of an execution plan.

    A step with a single task runs on its own; a step with several tasks is
    a parallel group whose members have no ordering constraint between them.
    """

    tasks: tuple[TaskDefinition, ...]

    @property
    def is_parallel(self) -> bool:
        return len(self.tasks) > 1

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(task.name for task in self.tasks)


@dataclass(frozen=True)
class ExecutionPlan:
    """Ordered, immutable plan produced for one top-level invocation.

    Attributes:
        root: Canonical name of the requested task.
        steps: Plan entries in execution order.
        dependencies: Canonical dependency names per planned task.
        parallel: Whether independent tasks were grouped.
    """

    root: str
    steps: tuple[PlanStep, ...]
    dependencies: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    parallel: bool = False

    @property
    def tasks(self) -> tuple[TaskDefinition, ...]:
        """Return every planned task in execution order."""
        return tuple(task for step in self.steps for task in step.tasks)

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(task.name for task in self.tasks)

    def depends_on(self, name: str, other: str) -> bool:
        """Return True if ``name`` transitively depends on ``other``."""
        stack = list(self.dependencies.get(name, ()))
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current == other:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.dependencies.get(current, ()))
        return False

    def __iter__(self) -> Iterator[PlanStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)


class DependencyResolver:
    """Expands a task's dependency graph into an ExecutionPlan.

    Example:
        >>> resolver = DependencyResolver(registry)
        >>> plan = resolver.plan("run")
        >>> plan.names
        ('build', 'run')
    """

    def __init__(self, registry: TaskRegistry) -> None:
        self._registry = registry

    def plan(self, root: str, parallel: bool = False) -> ExecutionPlan:
        """Build the execution plan for a task name or alias.

        Args:
            root: Name or alias of the requested task.
            parallel: If True, group tasks of equal dependency depth into
                parallel steps. Otherwise every step holds one task.

        Returns:
            The immutable execution plan.

        Raises:
            UnknownTaskError: If the root or a dependency does not exist.
            CyclicDependencyError: If the dependency graph has a cycle.
        """
        root_task = self._registry.resolve(root)

        marks: dict[str, _Mark] = {}
        path: list[str] = []
        order: list[TaskDefinition] = []
        edges: dict[str, tuple[str, ...]] = {}
        depth: dict[str, int] = {}

        def visit(task: TaskDefinition) -> None:
            mark = marks.get(task.name)
            if mark is _Mark.BLACK:
                return
            if mark is _Mark.GRAY:
                start = path.index(task.name)
                raise CyclicDependencyError([*path[start:], task.name])

            marks[task.name] = _Mark.GRAY
            path.append(task.name)

            children: list[str] = []
            for dep_name in task.dependencies:
                try:
                    dependency = self._registry.resolve(dep_name)
                except UnknownTaskError as e:
                    raise UnknownTaskError(
                        dep_name,
                        f"Task '{task.name}' depends on unknown task '{dep_name}'",
                    ) from e
                visit(dependency)
                if dependency.name not in children:
                    children.append(dependency.name)

            path.pop()
            marks[task.name] = _Mark.BLACK
            edges[task.name] = tuple(children)
            depth[task.name] = 1 + max((depth[c] for c in children), default=-1)
            order.append(task)

        visit(root_task)

        if parallel:
            levels: dict[int, list[TaskDefinition]] = {}
            for task in order:
                levels.setdefault(depth[task.name], []).append(task)
            steps = tuple(PlanStep(tuple(levels[d])) for d in sorted(levels))
        else:
            steps = tuple(PlanStep((task,)) for task in order)

        plan = ExecutionPlan(
            root=root_task.name,
            steps=steps,
            dependencies=edges,
            parallel=parallel,
        )
        logger.debug(
            "Planned '%s': %s",
            root_task.name,
            " -> ".join("[" + ", ".join(s.names) + "]" for s in steps),
        )
        return plan
