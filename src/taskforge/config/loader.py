"""TaskForge manifest loader for YAML task definitions.

This module provides the ManifestLoader class that:
1. Locates and reads YAML manifest files
2. Transforms raw YAML into a validated ManifestConfig
3. Validates task references, parameters and names
4. Produces the immutable TaskDefinition values for the registry
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from taskforge.engine.variables import VariableResolver
from taskforge.exceptions import ManifestError, TaskForgeError
from taskforge.tasks.definition import Parameter, TaskDefinition

from .models import EngineSettings, ManifestConfig, TaskCallConfig, TaskConfig

logger = logging.getLogger(__name__)

TASK_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.:-]*$")
VAR_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Manifest:
    """A loaded, validated manifest.

    Attributes:
        path: File the manifest was read from, or None for strings.
        root_dir: Directory task paths and commands are relative to.
        settings: Engine settings.
        variables: Manifest-level variable templates.
        tasks: Task definitions in declaration order.
    """

    path: Path | None
    root_dir: Path
    settings: EngineSettings = field(default_factory=EngineSettings)
    variables: dict[str, str] = field(default_factory=dict)
    tasks: tuple[TaskDefinition, ...] = ()


class ManifestLoader:
    """Loader for YAML task manifests.

    The ManifestLoader reads YAML files, parses them into Pydantic models,
    validates them and converts every task into a TaskDefinition. Any problem
    raises ManifestError before a single task can run.

    Example:
        >>> loader = ManifestLoader()
        >>> manifest = loader.load(loader.find())
        >>> [task.name for task in manifest.tasks]
        ['build', 'run']
    """

    DEFAULT_FILENAMES = (
        "taskforge.yml",
        "taskforge.yaml",
        "Taskfile.yml",
        "Taskfile.yaml",
    )

    def find(self, start: str | Path | None = None) -> Path:
        """Search ``start`` and its parents for a manifest file.

        Raises:
            ManifestError: If no manifest is found.
        """
        directory = Path(start or Path.cwd()).resolve()
        for candidate_dir in (directory, *directory.parents):
            for filename in self.DEFAULT_FILENAMES:
                candidate = candidate_dir / filename
                if candidate.is_file():
                    logger.debug("Found manifest %s", candidate)
                    return candidate
        raise ManifestError(
            f"No manifest found in {directory} or its parents "
            f"(looked for {', '.join(self.DEFAULT_FILENAMES)})"
        )

    def load(self, yaml_path: str | Path) -> Manifest:
        """Load, validate and convert a YAML manifest file.

        Args:
            yaml_path: Path to the manifest.

        Returns:
            The loaded Manifest.

        Raises:
            ManifestError: If the file cannot be read, parsed or validated.
        """
        path = Path(yaml_path)

        try:
            with path.open("r", encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ManifestError(f"Manifest file not found: {path}") from e
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid YAML in {path}: {e}") from e

        config = self._parse_raw_config(raw_config, str(path))
        return self._build(config, path.resolve(), path.resolve().parent)

    def load_from_string(
        self, yaml_content: str, root_dir: str | Path | None = None
    ) -> Manifest:
        """Load a manifest from a YAML string.

        Useful for testing and programmatic configuration.

        Args:
            yaml_content: YAML manifest as a string.
            root_dir: Directory tasks run in. Defaults to the current directory.

        Raises:
            ManifestError: If content cannot be parsed or validated.
        """
        try:
            raw_config = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ManifestError(f"Invalid YAML: {e}") from e

        config = self._parse_raw_config(raw_config, "<string>")
        return self._build(config, None, Path(root_dir or Path.cwd()).resolve())

    def _parse_raw_config(self, raw_config: Any, source: str) -> ManifestConfig:
        """Validate the raw YAML document against the manifest schema."""
        if not isinstance(raw_config, dict):
            raise ManifestError(
                f"Manifest must be a YAML mapping, got {type(raw_config).__name__}"
            )
        if "tasks" not in raw_config:
            raise ManifestError(f"Manifest {source} is missing required 'tasks' section")

        try:
            return ManifestConfig.model_validate(raw_config)
        except ValidationError as e:
            raise ManifestError(f"Manifest validation failed for {source}: {e}") from e

    def validate(self, config: ManifestConfig) -> list[str]:
        """Validate a parsed manifest.

        This method performs semantic validation:
        1. Checks task and variable names
        2. Checks for duplicate names and aliases
        3. Checks task calls come before shell commands
        4. Checks parameter declarations
        5. Verifies dependencies reference existing tasks
        6. Verifies manifest variables expand

        Args:
            config: The ManifestConfig to validate.

        Returns:
            List of validation error messages. Empty list means valid.
        """
        errors: list[str] = []

        for name in config.tasks:
            if not TASK_NAME_PATTERN.match(name):
                errors.append(f"Invalid task name: '{name}'")

        for name in config.vars:
            if not VAR_NAME_PATTERN.match(name):
                errors.append(f"Invalid variable name: '{name}'")

        errors.extend(self._check_duplicate_names(config))

        known_names = set(config.tasks)
        for task in config.tasks.values():
            known_names.update(task.aliases)

        for name, task in config.tasks.items():
            errors.extend(self._check_task(name, task, known_names))

        try:
            VariableResolver(config.vars).global_context()
        except TaskForgeError as e:
            errors.append(f"Invalid manifest variables: {e}")

        return errors

    def _check_duplicate_names(self, config: ManifestConfig) -> list[str]:
        """Check that no alias collides with a task name or another alias."""
        errors: list[str] = []
        owners: dict[str, str] = {name: name for name in config.tasks}

        for name, task in config.tasks.items():
            for alias in task.aliases:
                if alias in owners:
                    errors.append(
                        f"Alias '{alias}' of task '{name}' is already used by "
                        f"task '{owners[alias]}'"
                    )
                else:
                    owners[alias] = name

        return errors

    def _check_task(
        self, name: str, task: TaskConfig, known_names: set[str]
    ) -> list[str]:
        """Check one task's commands, parameters and references."""
        errors: list[str] = []

        seen_command = False
        for entry in task.cmds:
            if isinstance(entry, TaskCallConfig):
                if seen_command:
                    errors.append(
                        f"Task '{name}': task call '{entry.task}' must come "
                        f"before shell commands"
                    )
            else:
                seen_command = True

        param_names = [p.name for p in task.params]
        for param_name in sorted(set(param_names)):
            if param_names.count(param_name) > 1:
                errors.append(f"Task '{name}': duplicate parameter '{param_name}'")
        for i, param in enumerate(task.params):
            if param.variadic and i != len(task.params) - 1:
                errors.append(
                    f"Task '{name}': variadic parameter '{param.name}' must be last"
                )

        for dep in [*task.deps, *task.task_calls]:
            if dep not in known_names:
                errors.append(
                    f"Task '{name}' depends on unknown task '{dep}'. "
                    f"Available: {sorted(known_names)}"
                )

        return errors

    def _build(
        self, config: ManifestConfig, path: Path | None, root_dir: Path
    ) -> Manifest:
        """Validate a ManifestConfig and convert it into a Manifest."""
        errors = self.validate(config)
        if errors:
            source = path or "<string>"
            raise ManifestError(
                f"Manifest validation failed for {source}:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )

        tasks = tuple(
            self._to_definition(name, task) for name, task in config.tasks.items()
        )
        logger.debug("Loaded %d task(s) from %s", len(tasks), path or "<string>")

        return Manifest(
            path=path,
            root_dir=root_dir,
            settings=config.settings,
            variables=dict(config.vars),
            tasks=tasks,
        )

    def _to_definition(self, name: str, task: TaskConfig) -> TaskDefinition:
        """Convert a TaskConfig into an immutable TaskDefinition.

        Task calls in ``cmds`` become dependencies, after explicit ``deps``.
        """
        dependencies: list[str] = []
        for dep in [*task.deps, *task.task_calls]:
            if dep not in dependencies:
                dependencies.append(dep)

        return TaskDefinition(
            name=name,
            commands=tuple(task.shell_commands),
            dependencies=tuple(dependencies),
            inputs=tuple(task.inputs),
            outputs=tuple(task.outputs),
            method=task.method,
            aliases=tuple(task.aliases),
            parameters=tuple(
                Parameter(p.name, p.default, p.variadic) for p in task.params
            ),
            description=task.desc,
            silent=task.silent,
            directory=task.dir,
        )
