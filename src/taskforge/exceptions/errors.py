"""TaskForge exception types."""

from __future__ import annotations

from collections.abc import Sequence


class TaskForgeError(Exception):
    """Base exception for all TaskForge errors."""

    pass


class ManifestError(TaskForgeError):
    """Raised when a task manifest is invalid.

    This includes YAML parsing errors, missing required sections,
    schema validation failures and dangling task references.
    """

    pass


class UnknownTaskError(TaskForgeError):
    """Raised when a task name or alias is not found in the registry."""

    def __init__(self, task_name: str, message: str | None = None) -> None:
        self.task_name = task_name
        if message is None:
            message = f"Task '{task_name}' does not exist"
        super().__init__(message)


class DuplicateTaskError(TaskForgeError):
    """Raised when a task name or alias collides with an existing entry."""

    def __init__(self, name: str, existing: str) -> None:
        self.name = name
        self.existing = existing
        if name == existing:
            message = f"Task '{name}' is already registered"
        else:
            message = f"Name '{name}' is already registered as an alias of task '{existing}'"
        super().__init__(message)


class CyclicDependencyError(TaskForgeError):
    """Raised when the dependency graph of a task contains a cycle.

    Attributes:
        cycle: Task names along the cycle, first and last entries equal.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"Cyclic dependency detected: {' -> '.join(self.cycle)}")


class UnknownParameterError(TaskForgeError):
    """Raised when an invocation supplies a parameter the task does not declare."""

    def __init__(self, task_name: str, parameter: str, message: str | None = None) -> None:
        self.task_name = task_name
        self.parameter = parameter
        if message is None:
            message = f"Task '{task_name}' has no parameter '{parameter}'"
        super().__init__(message)


class UnresolvedPlaceholderError(TaskForgeError):
    """Raised when a placeholder in a command has no binding."""

    def __init__(self, task_name: str, placeholder: str, text: str) -> None:
        self.task_name = task_name
        self.placeholder = placeholder
        self.text = text
        super().__init__(
            f"Task '{task_name}': placeholder '{{{{{placeholder}}}}}' "
            f"has no value in {text!r}"
        )


class LaunchError(TaskForgeError):
    """Raised when a command's process could not be started."""

    def __init__(self, command: str, reason: str, task_name: str | None = None) -> None:
        self.command = command
        self.reason = reason
        self.task_name = task_name
        prefix = f"Task '{task_name}': " if task_name else ""
        super().__init__(f"{prefix}could not launch {command!r}: {reason}")


class CommandFailedError(TaskForgeError):
    """Raised when a command exits with a nonzero status."""

    def __init__(self, task_name: str, command: str, exit_code: int) -> None:
        self.task_name = task_name
        self.command = command
        self.exit_code = exit_code
        super().__init__(
            f"Task '{task_name}': command {command!r} exited with status {exit_code}"
        )
