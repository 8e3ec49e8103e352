"""TaskForge enums for staleness, failure handling and task states."""

from __future__ import annotations

from enum import Enum


class StalenessMethod(Enum):
    """How the staleness oracle decides whether a task must run.

    A task without a declared method is treated like ALWAYS.
    """

    ALWAYS = "always"
    """Always run the task."""

    CHECKSUM = "checksum"
    """Run when the combined content hash of the inputs changed."""

    TIMESTAMP = "timestamp"
    """Run when any input is newer than the newest output."""


class FailurePolicy(Enum):
    """What happens to the rest of a plan once a task fails."""

    FAIL_FAST = "fail_fast"
    """Cancel in-flight siblings and start nothing further."""

    CONTINUE = "continue"
    """Let siblings finish; abort only the tasks depending on the failure."""


class TaskState(Enum):
    """Lifecycle state of one task during a plan run.

    Pending -> Skipped, or Pending -> Running -> Succeeded | Failed.
    Cancelled marks a task that was running when the plan was aborted.
    """

    PENDING = "pending"
    SKIPPED = "skipped"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return True if the task will not change state again."""
        return self in (
            TaskState.SKIPPED,
            TaskState.SUCCEEDED,
            TaskState.FAILED,
            TaskState.CANCELLED,
        )
