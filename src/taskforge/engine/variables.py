"""TaskForge variable resolver.

Builds the substitution context for one invocation (task parameters, manifest
variables and built-ins) and expands ``{{name}}`` placeholders in command
strings, working directories and input/output patterns. Everything is
expanded once, before any subprocess is launched.
"""

from __future__ import annotations

import logging
import re
import sys
from collections import ChainMap
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from taskforge.exceptions import UnknownParameterError, UnresolvedPlaceholderError
from taskforge.tasks.definition import TaskDefinition

logger = logging.getLogger(__name__)

# Accepts {{name}}, {{ name }} and the Go-template style {{.name}}
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*\.?([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
NAME_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

VARS_SCOPE = "<vars>"


def builtin_variables(root_dir: Path) -> dict[str, str]:
    """Return the variables every manifest can reference."""
    return {
        "exeExt": ".exe" if sys.platform.startswith("win") else "",
        "OS": sys.platform,
        "ROOT_DIR": str(root_dir),
    }


def find_placeholders(text: str) -> list[str]:
    """Return placeholder names in order of appearance."""
    return PLACEHOLDER_PATTERN.findall(text)


def substitute(text: str, bindings: Mapping[str, str], scope: str) -> str:
    """Replace every placeholder in ``text`` with its bound value.

    Substitution is textual and single-pass: a value that itself contains
    ``{{...}}`` is inserted verbatim.

    Args:
        text: Template string.
        bindings: Mapping of names to values.
        scope: Task name (or ``<vars>``) used in error messages.

    Raises:
        UnresolvedPlaceholderError: If a placeholder has no binding.
    """

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in bindings:
            raise UnresolvedPlaceholderError(scope, name, text)
        return bindings[name]

    return PLACEHOLDER_PATTERN.sub(_replace, text)


@dataclass(frozen=True)
class ResolvedTask:
    """A task with every template expanded for one invocation.

    Attributes:
        definition: The canonical task definition.
        bindings: Parameter name to value for this invocation.
        commands: Fully substituted command strings.
        inputs: Substituted input patterns.
        outputs: Substituted output patterns.
        directory: Working directory for the task's commands.
    """

    definition: TaskDefinition
    bindings: Mapping[str, str]
    commands: tuple[str, ...]
    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    directory: Path

    @property
    def name(self) -> str:
        return self.definition.name


class VariableResolver:
    """Resolves parameters and variables into a flat substitution context.

    Lookup order for a task is: its parameter bindings, then manifest
    variables, then built-in variables.

    Example:
        >>> resolver = VariableResolver({"DOCS_PORT": "40000"}, Path("."))
        >>> context = resolver.global_context()
        >>> bindings = resolver.bind(task, {"PORT": "8080"})
        >>> resolved = resolver.resolve(task, bindings, context)
    """

    def __init__(
        self,
        variables: Mapping[str, str] | None = None,
        root_dir: Path | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            variables: Manifest-level variable templates in declaration order.
            root_dir: Directory task paths are relative to. Defaults to cwd.
        """
        self._variables = dict(variables or {})
        self._root_dir = (root_dir or Path.cwd()).resolve()

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    @property
    def variables(self) -> dict[str, str]:
        return dict(self._variables)

    def global_context(self, overrides: Mapping[str, str] | None = None) -> dict[str, str]:
        """Expand manifest variables, in declaration order, into a context.

        Each variable may reference built-ins and variables declared before
        it. Overridden variables take the supplied value literally.

        Raises:
            UnknownParameterError: If an override names no manifest variable.
            UnresolvedPlaceholderError: If a variable references an unknown name.
        """
        overrides = dict(overrides or {})
        for name in overrides:
            if name not in self._variables:
                raise UnknownParameterError(
                    VARS_SCOPE, name, f"Manifest declares no variable '{name}'"
                )

        builtins = builtin_variables(self._root_dir)
        expanded: dict[str, str] = {}
        for name, template in self._variables.items():
            if name in overrides:
                expanded[name] = overrides[name]
            else:
                expanded[name] = substitute(
                    template, ChainMap(expanded, builtins), VARS_SCOPE
                )

        context = dict(builtins)
        context.update(expanded)
        logger.debug("Resolved variables: %s", expanded)
        return context

    def parse_arguments(
        self,
        task: TaskDefinition,
        arguments: Sequence[str],
    ) -> tuple[dict[str, str], dict[str, str]]:
        """Split invocation arguments into parameter values and variable overrides.

        ``key=value`` tokens bind the task's parameters or, failing that,
        override a manifest variable. Bare tokens bind parameters positionally;
        a trailing variadic parameter collects the rest.

        Returns:
            Tuple of (supplied parameter values, variable overrides).

        Raises:
            UnknownParameterError: For unknown keys or surplus positional tokens.
        """
        supplied: dict[str, str] = {}
        overrides: dict[str, str] = {}
        positional: list[str] = []

        for token in arguments:
            key, sep, value = token.partition("=")
            if sep and NAME_PATTERN.fullmatch(key):
                if task.get_parameter(key) is not None:
                    supplied[key] = value
                elif key in self._variables:
                    overrides[key] = value
                else:
                    raise UnknownParameterError(task.name, key)
            else:
                positional.append(token)

        open_parameters = [p for p in task.parameters if p.name not in supplied]
        remaining = list(positional)
        for parameter in open_parameters:
            if not remaining:
                break
            if parameter.variadic:
                supplied[parameter.name] = " ".join(remaining)
                remaining = []
            else:
                supplied[parameter.name] = remaining.pop(0)

        if remaining:
            raise UnknownParameterError(
                task.name,
                remaining[0],
                f"Task '{task.name}' got unexpected argument {remaining[0]!r}",
            )

        return supplied, overrides

    def bind(
        self,
        task: TaskDefinition,
        supplied: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Bind a task's declared parameters for one invocation.

        Supplied values override declared defaults. Required parameters that
        were not supplied stay unbound; referencing them fails at resolve time.

        Raises:
            UnknownParameterError: If a supplied key is not a declared parameter.
        """
        supplied = dict(supplied or {})
        for key in supplied:
            if task.get_parameter(key) is None:
                raise UnknownParameterError(task.name, key)

        bindings: dict[str, str] = {}
        for parameter in task.parameters:
            if parameter.name in supplied:
                bindings[parameter.name] = supplied[parameter.name]
            elif parameter.default is not None:
                bindings[parameter.name] = parameter.default
        return bindings

    def resolve(
        self,
        task: TaskDefinition,
        bindings: Mapping[str, str],
        context: Mapping[str, str],
    ) -> ResolvedTask:
        """Substitute every template of a task.

        Raises:
            UnresolvedPlaceholderError: If any placeholder has no binding.
        """
        lookup = ChainMap(dict(bindings), dict(context))

        def _expand(templates: Sequence[str]) -> tuple[str, ...]:
            return tuple(substitute(t, lookup, task.name) for t in templates)

        directory = self._root_dir
        if task.directory:
            directory = (self._root_dir / substitute(task.directory, lookup, task.name)).resolve()

        return ResolvedTask(
            definition=task,
            bindings=dict(bindings),
            commands=_expand(task.commands),
            inputs=_expand(task.inputs),
            outputs=_expand(task.outputs),
            directory=directory,
        )
