"""TaskForge exception types."""

from taskforge.exceptions.errors import (
    CommandFailedError,
    CyclicDependencyError,
    DuplicateTaskError,
    LaunchError,
    ManifestError,
    TaskForgeError,
    UnknownParameterError,
    UnknownTaskError,
    UnresolvedPlaceholderError,
)

__all__ = [
    "TaskForgeError",
    "ManifestError",
    "UnknownTaskError",
    "DuplicateTaskError",
    "CyclicDependencyError",
    "UnknownParameterError",
    "UnresolvedPlaceholderError",
    "LaunchError",
    "CommandFailedError",
]
