"""TaskForge staleness oracle.

Decides, per task and per invocation, whether a task's commands must run or
may be skipped, from the current state of its declared inputs and outputs.
Checksums of previous successful runs are kept in memory only.
"""

from __future__ import annotations

import glob
import hashlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from taskforge.enums import StalenessMethod

from .variables import ResolvedTask

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class StalenessRecord:
    """Outcome of one staleness check.

    Attributes:
        task: Task name.
        stale: True if the task must run.
        reason: Short human-readable explanation.
        checksum: Combined input hash for checksum tasks, if it could be computed.
    """

    task: str
    stale: bool
    reason: str
    checksum: str | None = None


class ChecksumStore:
    """In-memory record of input hashes taken before successful runs."""

    def __init__(self) -> None:
        self._checksums: dict[str, str] = {}

    @staticmethod
    def key_for(task: ResolvedTask) -> str:
        """Identify a task together with its resolved commands."""
        return "\x00".join((task.name, *task.commands))

    def get(self, task: ResolvedTask) -> str | None:
        return self._checksums.get(self.key_for(task))

    def put(self, task: ResolvedTask, checksum: str) -> None:
        self._checksums[self.key_for(task)] = checksum

    def clear(self) -> None:
        self._checksums.clear()

    def __len__(self) -> int:
        return len(self._checksums)


def has_magic(pattern: str) -> bool:
    return glob.has_magic(pattern)


def expand_patterns(patterns: Iterable[str], base: Path) -> list[Path]:
    """Expand glob patterns relative to ``base`` into existing paths.

    Directories matched by a pattern contribute every file below them.
    """
    found: set[Path] = set()
    for pattern in patterns:
        for match in glob.glob(pattern, root_dir=base, recursive=True):
            path = base / match
            if path.is_dir():
                found.update(p for p in path.rglob("*") if p.is_file())
            else:
                found.add(path)
    return sorted(found)


def missing_outputs(patterns: Iterable[str], base: Path) -> list[str]:
    """Return the output patterns with nothing on disk."""
    missing: list[str] = []
    for pattern in patterns:
        if has_magic(pattern):
            if not glob.glob(pattern, root_dir=base, recursive=True):
                missing.append(pattern)
        elif not (base / pattern).exists():
            missing.append(pattern)
    return missing


def combined_checksum(paths: Iterable[Path], base: Path) -> str:
    """Hash file names and contents into one SHA-256 digest.

    Raises:
        OSError: If a file cannot be read.
    """
    digest = hashlib.sha256()
    for path in sorted(paths):
        try:
            name = path.relative_to(base).as_posix()
        except ValueError:
            name = path.as_posix()
        digest.update(name.encode("utf-8"))
        digest.update(b"\x00")
        with path.open("rb") as f:
            while chunk := f.read(_CHUNK_SIZE):
                digest.update(chunk)
        digest.update(b"\x00")
    return digest.hexdigest()


class StalenessOracle:
    """Decides whether tasks must run.

    A task is stale when its method is ``always`` or undeclared, when any
    declared output is missing, when its input checksum differs from the one
    recorded before its last successful run, or, for ``timestamp``, when any
    input is newer than the newest output. Failures while reading inputs make
    the task stale, never the plan fail.

    Example:
        >>> oracle = StalenessOracle()
        >>> record = oracle.check(resolved_task)
        >>> if not record.stale:
        ...     print(record.reason)
    """

    def __init__(self, store: ChecksumStore | None = None) -> None:
        self._store = store if store is not None else ChecksumStore()

    @property
    def store(self) -> ChecksumStore:
        return self._store

    def is_stale(self, task: ResolvedTask) -> bool:
        """Return True if the task's commands must run."""
        return self.check(task).stale

    def check(self, task: ResolvedTask) -> StalenessRecord:
        """Evaluate the staleness of a resolved task."""
        method = task.definition.method
        base = task.directory

        if method is None or method is StalenessMethod.ALWAYS:
            return StalenessRecord(task.name, True, "always runs")

        checksum: str | None = None
        checksum_error: str | None = None
        if method is StalenessMethod.CHECKSUM:
            try:
                checksum = combined_checksum(expand_patterns(task.inputs, base), base)
                logger.debug("Task '%s' input checksum %s", task.name, checksum)
            except OSError as e:
                checksum_error = f"could not hash inputs: {e}"

        missing = missing_outputs(task.outputs, base)
        if missing:
            return StalenessRecord(
                task.name, True, f"missing output {missing[0]!r}", checksum
            )

        if method is StalenessMethod.CHECKSUM:
            return self._check_checksum(task, checksum, checksum_error)
        return self._check_timestamp(task)

    def record_success(self, task: ResolvedTask, record: StalenessRecord) -> None:
        """Remember the checksum taken before a successful run."""
        if record.checksum is not None:
            self._store.put(task, record.checksum)

    def _check_checksum(
        self,
        task: ResolvedTask,
        checksum: str | None,
        error: str | None,
    ) -> StalenessRecord:
        if checksum is None:
            return StalenessRecord(task.name, True, error or "no checksum")
        previous = self._store.get(task)
        if previous is None:
            return StalenessRecord(task.name, True, "no previous checksum", checksum)
        if previous != checksum:
            return StalenessRecord(task.name, True, "inputs changed", checksum)
        return StalenessRecord(task.name, False, "inputs unchanged", checksum)

    def _check_timestamp(self, task: ResolvedTask) -> StalenessRecord:
        base = task.directory
        if not task.outputs:
            return StalenessRecord(task.name, True, "no outputs declared")
        try:
            outputs = expand_patterns(task.outputs, base)
            outputs.extend(
                base / p for p in task.outputs if not has_magic(p) and (base / p).is_dir()
            )
            newest_output = max(p.stat().st_mtime for p in outputs)
            for path in expand_patterns(task.inputs, base):
                if path.stat().st_mtime > newest_output:
                    return StalenessRecord(
                        task.name, True, f"input {path.name!r} is newer than outputs"
                    )
        except (OSError, ValueError) as e:
            return StalenessRecord(task.name, True, f"could not stat files: {e}")
        return StalenessRecord(task.name, False, "outputs up to date")
