"""TaskForge configuration models for YAML task manifests.

This module provides Pydantic models for parsing and validating task
manifests. The configuration hierarchy is:

    ManifestConfig
    ├── EngineSettings
    ├── vars: Dict[str, str]
    └── tasks: Dict[str, TaskConfig]
        ├── cmds: (str | TaskCallConfig)[]
        └── params: ParameterConfig[]
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from taskforge.enums import FailurePolicy, StalenessMethod


def _stringify(value: Any) -> Any:
    """Render YAML scalars (ints, floats, bools) as command text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


class EngineSettings(BaseModel):
    """Execution settings for a manifest.

    Attributes:
        parallel: Group independent tasks into parallel plan steps.
        failure_policy: What a failed task does to the rest of the plan.
        max_parallel: Upper bound on concurrently running tasks in a group.
        capture_output: Capture command output instead of streaming it.
    """

    model_config = ConfigDict(extra="forbid")

    parallel: bool = False
    failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST
    max_parallel: int | None = Field(default=None, ge=1)
    capture_output: bool = False

    @field_validator("failure_policy", mode="before")
    @classmethod
    def parse_failure_policy(cls, v: Any) -> FailurePolicy:
        """Allow string input for the failure policy."""
        if isinstance(v, str):
            # Handle both 'fail_fast' and 'fail-fast' formats
            normalized = v.lower().replace("-", "_")
            return FailurePolicy(normalized)
        return v


class ParameterConfig(BaseModel):
    """A declared task parameter.

    Attributes:
        name: Parameter name.
        default: Default value; None makes the parameter required.
        variadic: Collect all remaining positional arguments.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    default: str | None = None
    variadic: bool = False

    @field_validator("default", mode="before")
    @classmethod
    def parse_default(cls, v: Any) -> Any:
        return _stringify(v)


class TaskCallConfig(BaseModel):
    """A command entry that calls another task: ``- task: build``."""

    model_config = ConfigDict(extra="forbid")

    task: str = Field(min_length=1)


CommandEntry = Union[str, TaskCallConfig]


class TaskConfig(BaseModel):
    """Configuration for one task.

    Attributes:
        desc: Description shown by ``list``.
        cmds: Shell commands and task calls, in order.
        deps: Tasks that must complete before this one.
        inputs: Source file patterns (``sources`` in Taskfile syntax).
        outputs: Generated file patterns (``generates`` in Taskfile syntax).
        method: Staleness method.
        aliases: Alternate names.
        params: Declared parameters.
        silent: Do not echo commands.
        dir: Working directory relative to the manifest.
    """

    model_config = ConfigDict(extra="forbid")

    desc: str = ""
    cmds: list[CommandEntry] = Field(default_factory=list)
    deps: list[str] = Field(default_factory=list)
    inputs: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("inputs", "sources")
    )
    outputs: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("outputs", "generates")
    )
    method: StalenessMethod | None = None
    aliases: list[str] = Field(default_factory=list)
    params: list[ParameterConfig] = Field(default_factory=list)
    silent: bool = False
    dir: str | None = None

    @field_validator("cmds", mode="before")
    @classmethod
    def parse_cmds(cls, v: Any) -> Any:
        """Accept a single command string and stringify scalar commands."""
        if isinstance(v, str):
            return [v]
        if isinstance(v, list):
            return [_stringify(item) for item in v]
        return v

    @field_validator("deps", "aliases", "inputs", "outputs", mode="before")
    @classmethod
    def parse_string_list(cls, v: Any) -> Any:
        """Accept a single string where a list is expected."""
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("method", mode="before")
    @classmethod
    def parse_method(cls, v: Any) -> StalenessMethod | None:
        """Allow string input for the staleness method."""
        if isinstance(v, str):
            return StalenessMethod(v.lower())
        return v

    @field_validator("params", mode="before")
    @classmethod
    def parse_params(cls, v: Any) -> Any:
        """Accept a ``{name: default}`` mapping as well as a list."""
        if isinstance(v, dict):
            return [{"name": name, "default": default} for name, default in v.items()]
        return v

    @property
    def task_calls(self) -> list[str]:
        return [c.task for c in self.cmds if isinstance(c, TaskCallConfig)]

    @property
    def shell_commands(self) -> list[str]:
        return [c for c in self.cmds if isinstance(c, str)]


class ManifestConfig(BaseModel):
    """Complete task manifest.

    This is the root model for YAML task manifests.

    Attributes:
        version: Informational manifest version.
        settings: Engine execution settings.
        vars: Manifest-level variables in declaration order.
        tasks: Task name to task configuration.
    """

    model_config = ConfigDict(extra="forbid")

    version: str | None = None
    settings: EngineSettings = Field(default_factory=EngineSettings)
    vars: dict[str, str] = Field(default_factory=dict)
    tasks: dict[str, TaskConfig] = Field(min_length=1)

    @field_validator("version", mode="before")
    @classmethod
    def parse_version(cls, v: Any) -> Any:
        return _stringify(v)

    @field_validator("vars", mode="before")
    @classmethod
    def parse_vars(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {name: _stringify(value) for name, value in v.items()}
        return v

    @field_validator("tasks", mode="before")
    @classmethod
    def parse_tasks(cls, v: Any) -> Any:
        """Expand shorthand tasks given as a bare command list or string."""
        if not isinstance(v, dict):
            return v
        expanded: dict[str, Any] = {}
        for name, body in v.items():
            if isinstance(body, (list, str)):
                expanded[name] = {"cmds": body}
            else:
                expanded[name] = body
        return expanded
