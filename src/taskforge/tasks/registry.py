"""TaskForge task registry.

The registry maps task names and aliases to TaskDefinition values. Unlike a
process-wide singleton it is constructed explicitly, filled once from a
manifest and then sealed, so it can be shared read-only by the planner and
the executor during a run.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from taskforge.exceptions import DuplicateTaskError, UnknownTaskError
from taskforge.tasks.definition import TaskDefinition


class TaskRegistry:
    """Registry of task definitions addressed by name or alias.

    Aliases are pure lookup indirections: they point at the canonical name,
    never at a copy of the definition.

    Example:
        >>> registry = TaskRegistry()
        >>> registry.register(TaskDefinition(name="build", aliases=("b",)))
        >>> registry.resolve("b") is registry.resolve("build")
        True
    """

    def __init__(self) -> None:
        self._tasks: dict[str, TaskDefinition] = {}
        self._aliases: dict[str, str] = {}
        self._sealed = False

    @classmethod
    def from_definitions(cls, definitions: Iterable[TaskDefinition]) -> TaskRegistry:
        """Build a sealed registry from a sequence of definitions.

        Raises:
            DuplicateTaskError: If any name or alias collides.
        """
        registry = cls()
        for definition in definitions:
            registry.register(definition)
        registry.seal()
        return registry

    def register(self, definition: TaskDefinition) -> None:
        """Register a task definition and its aliases.

        Args:
            definition: The definition to add.

        Raises:
            DuplicateTaskError: If the name or an alias is already taken.
            RuntimeError: If the registry has been sealed.
        """
        if self._sealed:
            raise RuntimeError("Task registry is sealed and cannot be modified")

        names = (definition.name, *definition.aliases)
        seen: set[str] = set()
        for name in names:
            owner = self._owner_of(name)
            if owner is not None:
                raise DuplicateTaskError(name, owner)
            if name in seen:
                raise DuplicateTaskError(name, definition.name)
            seen.add(name)

        self._tasks[definition.name] = definition
        for alias in definition.aliases:
            self._aliases[alias] = definition.name

    def resolve(self, name_or_alias: str) -> TaskDefinition:
        """Return the definition registered under a name or alias.

        Raises:
            UnknownTaskError: If nothing is registered under that name.
        """
        if name_or_alias in self._tasks:
            return self._tasks[name_or_alias]
        canonical = self._aliases.get(name_or_alias)
        if canonical is None:
            raise UnknownTaskError(name_or_alias)
        return self._tasks[canonical]

    def seal(self) -> None:
        """Make the registry read-only."""
        self._sealed = True

    def _owner_of(self, name: str) -> str | None:
        if name in self._tasks:
            return name
        return self._aliases.get(name)

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def tasks(self) -> dict[str, TaskDefinition]:
        """Return a copy of the canonical name to definition mapping."""
        return dict(self._tasks)

    @property
    def aliases(self) -> dict[str, str]:
        """Return a copy of the alias to canonical name mapping."""
        return dict(self._aliases)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._owner_of(name) is not None

    def __iter__(self) -> Iterator[TaskDefinition]:
        return iter(sorted(self._tasks.values(), key=lambda d: d.name))

    def __len__(self) -> int:
        return len(self._tasks)
