"""Immutable task definitions consumed by the registry and the engine."""

from __future__ import annotations

from dataclasses import dataclass, field

from taskforge.enums import StalenessMethod


@dataclass(frozen=True)
class Parameter:
    """A declared task parameter.

    Attributes:
        name: Parameter name, referenced as ``{{name}}`` in commands.
        default: Default value, or None when the caller must supply one.
        variadic: If True, collects all remaining positional arguments.
    """

    name: str
    default: str | None = None
    variadic: bool = False

    @property
    def required(self) -> bool:
        """Return True if the parameter has no default."""
        return self.default is None


@dataclass(frozen=True)
class TaskDefinition:
    """A named unit of commands with dependencies and a staleness policy.

    Attributes:
        name: Unique task name.
        commands: Shell command templates, run strictly in order.
        dependencies: Names of tasks that must complete before this one.
        inputs: Glob patterns for the task's source files.
        outputs: Glob patterns for the artifacts the task generates.
        method: Staleness method; None means the task always runs.
        aliases: Alternate names resolving to this definition.
        parameters: Declared parameters in positional order.
        description: Human-readable summary shown by ``list``.
        silent: If True, command lines are not echoed before running.
        directory: Working directory template, relative to the manifest root.
    """

    name: str
    commands: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()
    method: StalenessMethod | None = None
    aliases: tuple[str, ...] = ()
    parameters: tuple[Parameter, ...] = field(default=())
    description: str = ""
    silent: bool = False
    directory: str | None = None

    def get_parameter(self, name: str) -> Parameter | None:
        """Return the declared parameter called ``name``, if any."""
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        return None

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.parameters)
