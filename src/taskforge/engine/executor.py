"""TaskForge executor for running execution plans.

The executor walks an ExecutionPlan step by step. Single-task steps run on
the calling coroutine; parallel groups run one asyncio task per member and
join them before the plan moves on. Commands within a task always run
strictly in order, and the first failing command ends the task.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field

from taskforge.enums import FailurePolicy, TaskState
from taskforge.exceptions import CommandFailedError, LaunchError, TaskForgeError

from .planner import ExecutionPlan, PlanStep
from .runner import CommandRunner, SubprocessRunner
from .staleness import StalenessOracle
from .variables import ResolvedTask

logger = logging.getLogger(__name__)


@dataclass
class CommandReport:
    """What happened to one attempted command.

    ``exit_code`` is None when the command could not be launched.
    """

    command: str
    exit_code: int | None
    elapsed: float = 0.0
    output: str | None = None


@dataclass
class TaskReport:
    """Outcome of one task during a plan run."""

    name: str
    state: TaskState = TaskState.PENDING
    reason: str = ""
    commands: list[CommandReport] = field(default_factory=list)
    elapsed: float = 0.0
    error: TaskForgeError | None = None


@dataclass
class RunReport:
    """Aggregated outcome of a plan run.

    Attributes:
        root: Canonical name of the requested task.
        tasks: Task reports in plan order.
        elapsed: Wall-clock seconds for the whole run.
    """

    root: str
    tasks: dict[str, TaskReport] = field(default_factory=dict)
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        """True when every planned task succeeded or was skipped."""
        return all(
            r.state in (TaskState.SUCCEEDED, TaskState.SKIPPED)
            for r in self.tasks.values()
        )

    @property
    def failures(self) -> list[TaskReport]:
        return [r for r in self.tasks.values() if r.state is TaskState.FAILED]

    def states(self) -> dict[str, TaskState]:
        return {name: r.state for name, r in self.tasks.items()}


class Executor:
    """Runs the tasks of an ExecutionPlan.

    Args:
        runner: Command runner; defaults to SubprocessRunner.
        oracle: Staleness oracle deciding which tasks to skip.
        failure_policy: FAIL_FAST aborts the plan on the first failure and
            cancels in-flight siblings. CONTINUE lets siblings finish and
            keeps running tasks that do not depend on a failed one.
        max_parallel: Upper bound on concurrently running group members.
        capture_output: Capture command output into the reports.

    Example:
        >>> executor = Executor(failure_policy=FailurePolicy.CONTINUE)
        >>> report = await executor.execute(plan, resolved_tasks)
        >>> report.succeeded
        True
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        oracle: StalenessOracle | None = None,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
        max_parallel: int | None = None,
        capture_output: bool = False,
    ) -> None:
        self._runner = runner or SubprocessRunner()
        self._oracle = oracle or StalenessOracle()
        self.failure_policy = failure_policy
        self.max_parallel = max_parallel
        self.capture_output = capture_output

    async def execute(
        self,
        plan: ExecutionPlan,
        resolved: Mapping[str, ResolvedTask],
    ) -> RunReport:
        """Execute a plan.

        Args:
            plan: The plan to run.
            resolved: Resolved task per planned task name.

        Returns:
            The run report. Task failures are recorded, not raised.

        Raises:
            asyncio.CancelledError: If the run is cancelled; running
                subprocesses are terminated first.
        """
        started = time.monotonic()
        report = RunReport(
            root=plan.root,
            tasks={name: TaskReport(name) for name in plan.names},
        )
        failed: set[str] = set()
        semaphore = asyncio.Semaphore(self.max_parallel) if self.max_parallel else None

        try:
            for step in plan:
                if failed and self.failure_policy is FailurePolicy.FAIL_FAST:
                    break

                runnable = []
                for task in step.tasks:
                    blocker = next((f for f in failed if plan.depends_on(task.name, f)), None)
                    if blocker is not None:
                        report.tasks[task.name].reason = f"dependency '{blocker}' failed"
                        logger.warning(
                            "Not running '%s': dependency '%s' failed", task.name, blocker
                        )
                    else:
                        runnable.append(task.name)

                if len(runnable) == 1:
                    await self._run_task(resolved[runnable[0]], report.tasks[runnable[0]])
                elif runnable:
                    await self._run_group(
                        PlanStep(tuple(t for t in step.tasks if t.name in runnable)),
                        resolved,
                        report,
                        semaphore,
                    )

                failed.update(
                    name for name in runnable
                    if report.tasks[name].state is TaskState.FAILED
                )
        finally:
            report.elapsed = time.monotonic() - started

        if report.succeeded:
            logger.info("Task '%s' finished in %.2fs", plan.root, report.elapsed)
        else:
            for failure in report.failures:
                logger.error("%s", failure.error)
        return report

    async def _run_group(
        self,
        step: PlanStep,
        resolved: Mapping[str, ResolvedTask],
        report: RunReport,
        semaphore: asyncio.Semaphore | None,
    ) -> None:
        """Run the members of a parallel group concurrently and join them."""
        logger.info("Running in parallel: %s", ", ".join(step.names))

        async def _member(name: str) -> None:
            if semaphore is None:
                await self._run_task(resolved[name], report.tasks[name])
            else:
                async with semaphore:
                    await self._run_task(resolved[name], report.tasks[name])

        pending = {
            asyncio.create_task(_member(name), name=f"task-{name}")
            for name in step.names
        }
        try:
            while pending:
                done, pending = await asyncio.wait(
                    pending, return_when=asyncio.FIRST_COMPLETED
                )
                for finished in done:
                    finished.result()
                if self.failure_policy is FailurePolicy.FAIL_FAST and any(
                    report.tasks[n].state is TaskState.FAILED for n in step.names
                ):
                    if pending:
                        logger.warning(
                            "Cancelling %d sibling task(s) after failure", len(pending)
                        )
                    await self._cancel(pending)
                    pending = set()
        except BaseException:
            await self._cancel(pending)
            raise

    @staticmethod
    async def _cancel(tasks: set[asyncio.Task[None]]) -> None:
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_task(self, task: ResolvedTask, report: TaskReport) -> None:
        """Run one task's commands in order, recording the outcome in ``report``."""
        # Hashing and stat walks block, so they run off the event loop
        try:
            record = await asyncio.to_thread(self._oracle.check, task)
        except asyncio.CancelledError:
            report.state = TaskState.CANCELLED
            report.reason = "cancelled"
            raise
        if not record.stale:
            report.state = TaskState.SKIPPED
            report.reason = record.reason
            logger.info("Task '%s' is up to date (%s)", task.name, record.reason)
            return

        report.state = TaskState.RUNNING
        report.reason = record.reason
        logger.info("Running task '%s' (%s)", task.name, record.reason)
        started = time.monotonic()

        try:
            for command in task.commands:
                if not task.definition.silent:
                    logger.info("[%s] %s", task.name, command)
                command_started = time.monotonic()
                try:
                    result = await self._runner.run(
                        command, task.directory, capture=self.capture_output
                    )
                except LaunchError as e:
                    report.commands.append(
                        CommandReport(command, None, time.monotonic() - command_started)
                    )
                    self._fail(report, LaunchError(e.command, e.reason, task_name=task.name))
                    return

                report.commands.append(
                    CommandReport(command, result.exit_code, result.elapsed, result.output)
                )
                if result.exit_code != 0:
                    self._fail(report, CommandFailedError(task.name, command, result.exit_code))
                    return
        except asyncio.CancelledError:
            report.state = TaskState.CANCELLED
            report.reason = "cancelled"
            logger.warning("Task '%s' cancelled", task.name)
            raise
        finally:
            report.elapsed = time.monotonic() - started

        report.state = TaskState.SUCCEEDED
        self._oracle.record_success(task, record)
        logger.debug("Task '%s' succeeded in %.2fs", task.name, report.elapsed)

    @staticmethod
    def _fail(report: TaskReport, error: TaskForgeError) -> None:
        report.state = TaskState.FAILED
        report.error = error
        report.reason = str(error)
