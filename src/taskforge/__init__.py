"""TaskForge - declarative task orchestration engine.

TaskForge runs named tasks described in a YAML manifest. Tasks declare shell
commands, dependencies, parameters with defaults, aliases and input/output
files; the engine plans dependencies depth-first, skips tasks whose outputs
are up to date and runs the rest, sequentially or in parallel groups.

Example:
    >>> import asyncio
    >>> from taskforge import Engine
    >>>
    >>> engine = Engine.load("Taskfile.yml")
    >>> report = asyncio.run(engine.run("docs", ["PORT=8080"]))
    >>> report.succeeded
    True
"""

from taskforge.config import (
    EngineSettings,
    Manifest,
    ManifestConfig,
    ManifestLoader,
    ParameterConfig,
    TaskCallConfig,
    TaskConfig,
)
from taskforge.engine import (
    ChecksumStore,
    CommandReport,
    CommandResult,
    CommandRunner,
    DependencyResolver,
    Engine,
    ExecutionPlan,
    Executor,
    PlanStep,
    PreparedRun,
    ResolvedTask,
    RunReport,
    StalenessOracle,
    StalenessRecord,
    SubprocessRunner,
    TaskReport,
    VariableResolver,
)
from taskforge.enums import FailurePolicy, StalenessMethod, TaskState
from taskforge.exceptions import (
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
from taskforge.tasks import Parameter, TaskDefinition, TaskRegistry

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "TaskForgeError",
    "ManifestError",
    "UnknownTaskError",
    "DuplicateTaskError",
    "CyclicDependencyError",
    "UnknownParameterError",
    "UnresolvedPlaceholderError",
    "LaunchError",
    "CommandFailedError",
    # Enums
    "FailurePolicy",
    "StalenessMethod",
    "TaskState",
    # Tasks
    "Parameter",
    "TaskDefinition",
    "TaskRegistry",
    # Config
    "EngineSettings",
    "Manifest",
    "ManifestConfig",
    "ManifestLoader",
    "ParameterConfig",
    "TaskCallConfig",
    "TaskConfig",
    # Engine
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
