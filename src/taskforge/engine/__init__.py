"""TaskForge Engine for task execution.

This module provides the Engine class and the components it drives:
variable resolution, dependency planning, staleness checks, the
subprocess runner and the executor.
"""

from .engine import Engine, PreparedRun
from .executor import CommandReport, Executor, RunReport, TaskReport
from .planner import DependencyResolver, ExecutionPlan, PlanStep
from .runner import CommandResult, CommandRunner, SubprocessRunner
from .staleness import ChecksumStore, StalenessOracle, StalenessRecord
from .variables import ResolvedTask, VariableResolver

__all__ = [
    "ChecksumStore",
    "CommandReport",
    "CommandResult",
    "CommandRunner",
    "DependencyResolver",
    "Engine",
    "ExecutionPlan",
    "Executor",
    "PlanStep",
    "PreparedRun",
    "ResolvedTask",
    "RunReport",
    "StalenessOracle",
    "StalenessRecord",
    "SubprocessRunner",
    "TaskReport",
    "VariableResolver",
]
