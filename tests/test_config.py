"""Tests for the TaskForge manifest configuration system.

This module tests:
- Pydantic configuration models
- ManifestLoader YAML parsing and discovery
- Semantic validation of tasks, parameters and references
- Conversion into TaskDefinition values
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from taskforge.config import (
    EngineSettings,
    ManifestConfig,
    ManifestLoader,
    ParameterConfig,
    TaskCallConfig,
    TaskConfig,
)
from taskforge.enums import FailurePolicy, StalenessMethod
from taskforge.exceptions import ManifestError
from taskforge.tasks import Parameter


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def loader() -> ManifestLoader:
    """Create a ManifestLoader instance."""
    return ManifestLoader()


TASKFILE = """
version: '3'

vars:
  BIN_NAME: gitpr{{exeExt}}
  DOCS_PORT: 40000

tasks:
  default:
    - task: build

  build:
    desc: Build project (default)
    aliases: [b]
    cmds:
      - cargo build
    sources:
      - ./src/*.rs
    generates:
      - ./target/debug/{{.BIN_NAME}}
    method: checksum

  docs:
    desc: Rebuild docs and start simple static server
    params:
      PORT: 40000
    cmds:
      - cargo makedocs && http target/doc -p {{PORT}}

  run:
    desc: Build and run
    cmds:
      - task: build
      - ./target/debug/{{.BIN_NAME}}
    silent: true
"""


# =============================================================================
# Model Tests
# =============================================================================


class TestEngineSettings:
    """Tests for EngineSettings model."""

    def test_default_values(self) -> None:
        settings = EngineSettings()
        assert settings.parallel is False
        assert settings.failure_policy == FailurePolicy.FAIL_FAST
        assert settings.max_parallel is None
        assert settings.capture_output is False

    def test_failure_policy_accepts_dashes(self) -> None:
        settings = EngineSettings(failure_policy="Fail-Fast")
        assert settings.failure_policy == FailurePolicy.FAIL_FAST

    def test_continue_policy(self) -> None:
        settings = EngineSettings(failure_policy="continue")
        assert settings.failure_policy == FailurePolicy.CONTINUE

    def test_max_parallel_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            EngineSettings(max_parallel=0)

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            EngineSettings(shell="/bin/zsh")


class TestTaskConfig:
    """Tests for TaskConfig model."""

    def test_taskfile_field_names(self) -> None:
        """sources/generates are accepted as aliases of inputs/outputs."""
        task = TaskConfig.model_validate(
            {"sources": ["src/*.rs"], "generates": ["target/app"]}
        )
        assert task.inputs == ["src/*.rs"]
        assert task.outputs == ["target/app"]

    def test_native_field_names(self) -> None:
        task = TaskConfig.model_validate({"inputs": ["a"], "outputs": ["b"]})
        assert task.inputs == ["a"]
        assert task.outputs == ["b"]

    def test_single_command_string(self) -> None:
        task = TaskConfig.model_validate({"cmds": "cargo build"})
        assert task.cmds == ["cargo build"]

    def test_scalar_commands_stringified(self) -> None:
        task = TaskConfig.model_validate({"cmds": [42]})
        assert task.cmds == ["42"]

    def test_task_call_entry(self) -> None:
        task = TaskConfig.model_validate({"cmds": [{"task": "build"}, "./app"]})
        assert task.cmds[0] == TaskCallConfig(task="build")
        assert task.task_calls == ["build"]
        assert task.shell_commands == ["./app"]

    def test_method_case_insensitive(self) -> None:
        task = TaskConfig.model_validate({"method": "CHECKSUM"})
        assert task.method == StalenessMethod.CHECKSUM

    def test_invalid_method_raises(self) -> None:
        with pytest.raises(ValidationError):
            TaskConfig.model_validate({"method": "sometimes"})

    def test_params_mapping(self) -> None:
        task = TaskConfig.model_validate({"params": {"PORT": 40000, "HOST": None}})
        assert task.params == [
            ParameterConfig(name="PORT", default="40000"),
            ParameterConfig(name="HOST", default=None),
        ]

    def test_params_list(self) -> None:
        task = TaskConfig.model_validate(
            {"params": [{"name": "args", "default": "", "variadic": True}]}
        )
        assert task.params[0].variadic is True
        assert task.params[0].default == ""

    def test_invalid_param_name(self) -> None:
        with pytest.raises(ValidationError):
            ParameterConfig(name="not valid")

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            TaskConfig.model_validate({"cmds": ["x"], "interval": 5})


class TestManifestConfig:
    """Tests for ManifestConfig model."""

    def test_shorthand_task_list(self) -> None:
        config = ManifestConfig.model_validate({"tasks": {"default": [{"task": "build"}], "build": "make"}})
        assert config.tasks["default"].task_calls == ["build"]
        assert config.tasks["build"].cmds == ["make"]

    def test_vars_stringified(self) -> None:
        config = ManifestConfig.model_validate(
            {"vars": {"PORT": 40000, "DEBUG": True}, "tasks": {"a": ["true"]}}
        )
        assert config.vars == {"PORT": "40000", "DEBUG": "true"}

    def test_tasks_required(self) -> None:
        with pytest.raises(ValidationError):
            ManifestConfig.model_validate({"tasks": {}})


# =============================================================================
# ManifestLoader Tests
# =============================================================================


class TestManifestLoader:
    """Tests for ManifestLoader parsing and conversion."""

    def test_load_taskfile(self, loader: ManifestLoader, write_manifest) -> None:
        path = write_manifest(TASKFILE)
        manifest = loader.load(path)

        assert manifest.path == path.resolve()
        assert manifest.root_dir == path.resolve().parent
        assert manifest.variables == {"BIN_NAME": "gitpr{{exeExt}}", "DOCS_PORT": "40000"}
        assert [t.name for t in manifest.tasks] == ["default", "build", "docs", "run"]

    def test_task_definition_fields(self, loader: ManifestLoader) -> None:
        manifest = loader.load_from_string(TASKFILE)
        build = {t.name: t for t in manifest.tasks}["build"]

        assert build.commands == ("cargo build",)
        assert build.inputs == ("./src/*.rs",)
        assert build.outputs == ("./target/debug/{{.BIN_NAME}}",)
        assert build.method == StalenessMethod.CHECKSUM
        assert build.aliases == ("b",)
        assert build.description == "Build project (default)"

    def test_task_calls_become_dependencies(self, loader: ManifestLoader) -> None:
        manifest = loader.load_from_string(TASKFILE)
        tasks = {t.name: t for t in manifest.tasks}

        assert tasks["run"].dependencies == ("build",)
        assert tasks["run"].commands == ("./target/debug/{{.BIN_NAME}}",)
        assert tasks["run"].silent is True
        assert tasks["default"].dependencies == ("build",)
        assert tasks["default"].commands == ()

    def test_deps_and_task_calls_deduplicated(self, loader: ManifestLoader) -> None:
        manifest = loader.load_from_string(
            """
tasks:
  a: [echo a]
  b:
    deps: [a]
    cmds:
      - task: a
      - echo b
"""
        )
        assert {t.name: t for t in manifest.tasks}["b"].dependencies == ("a",)

    def test_parameters_converted(self, loader: ManifestLoader) -> None:
        manifest = loader.load_from_string(TASKFILE)
        docs = {t.name: t for t in manifest.tasks}["docs"]
        assert docs.parameters == (Parameter("PORT", "40000"),)

    def test_load_from_string_root_dir(self, loader: ManifestLoader, tmp_path: Path) -> None:
        manifest = loader.load_from_string("tasks: {a: [true]}", root_dir=tmp_path)
        assert manifest.path is None
        assert manifest.root_dir == tmp_path.resolve()

    def test_settings_loaded(self, loader: ManifestLoader) -> None:
        manifest = loader.load_from_string(
            """
settings:
  parallel: true
  failure_policy: continue
  max_parallel: 2
tasks:
  a: [echo a]
"""
        )
        assert manifest.settings.parallel is True
        assert manifest.settings.failure_policy == FailurePolicy.CONTINUE
        assert manifest.settings.max_parallel == 2

    def test_missing_file(self, loader: ManifestLoader, tmp_path: Path) -> None:
        with pytest.raises(ManifestError, match="not found"):
            loader.load(tmp_path / "nope.yml")

    def test_invalid_yaml(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="Invalid YAML"):
            loader.load_from_string("tasks: [unclosed")

    def test_non_mapping_document(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="mapping"):
            loader.load_from_string("- just\n- a list\n")

    def test_missing_tasks_section(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="tasks"):
            loader.load_from_string("vars: {A: 1}\n")

    def test_schema_error_wrapped(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="validation failed"):
            loader.load_from_string("tasks:\n  a:\n    method: sometimes\n")


class TestManifestValidation:
    """Tests for semantic manifest validation."""

    def test_unknown_dependency(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="unknown task 'missing'"):
            loader.load_from_string("tasks:\n  a:\n    deps: [missing]\n")

    def test_dependency_on_alias_is_valid(self, loader: ManifestLoader) -> None:
        manifest = loader.load_from_string(
            "tasks:\n  build:\n    aliases: [b]\n    cmds: [make]\n  run:\n    deps: [b]\n"
        )
        assert {t.name: t for t in manifest.tasks}["run"].dependencies == ("b",)

    def test_task_call_after_command(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="must come before shell commands"):
            loader.load_from_string(
                "tasks:\n  a: [echo a]\n  b:\n    cmds:\n      - echo b\n      - task: a\n"
            )

    def test_alias_collides_with_task(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="Alias 'a'"):
            loader.load_from_string("tasks:\n  a: [echo a]\n  b:\n    aliases: [a]\n")

    def test_alias_collides_with_alias(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="already used"):
            loader.load_from_string(
                "tasks:\n  a:\n    aliases: [x]\n  b:\n    aliases: [x]\n"
            )

    def test_variadic_must_be_last(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="must be last"):
            loader.load_from_string(
                """
tasks:
  a:
    params:
      - {name: rest, default: '', variadic: true}
      - {name: other, default: x}
"""
            )

    def test_duplicate_parameter(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="duplicate parameter"):
            loader.load_from_string(
                "tasks:\n  a:\n    params:\n      - {name: P}\n      - {name: P}\n"
            )

    def test_unresolvable_variable(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="Invalid manifest variables"):
            loader.load_from_string("vars:\n  A: '{{B}}'\ntasks:\n  a: [echo]\n")

    def test_variable_may_reference_earlier_variable(self, loader: ManifestLoader) -> None:
        manifest = loader.load_from_string(
            "vars:\n  A: one\n  B: '{{A}}-two'\ntasks:\n  a: [echo]\n"
        )
        assert manifest.variables["B"] == "{{A}}-two"

    def test_invalid_task_name(self, loader: ManifestLoader) -> None:
        with pytest.raises(ManifestError, match="Invalid task name"):
            loader.load_from_string("tasks:\n  'has space': [echo]\n")

    def test_errors_are_collected(self, loader: ManifestLoader) -> None:
        config = ManifestConfig.model_validate(
            {
                "tasks": {
                    "a": {"deps": ["x"]},
                    "b": {"deps": ["y"]},
                }
            }
        )
        errors = loader.validate(config)
        assert len(errors) == 2


class TestManifestDiscovery:
    """Tests for ManifestLoader.find."""

    def test_finds_taskfile(self, loader: ManifestLoader, write_manifest, tmp_path: Path) -> None:
        path = write_manifest("tasks: {a: [echo]}")
        assert loader.find(tmp_path) == path.resolve()

    def test_prefers_taskforge_name(self, loader: ManifestLoader, write_manifest, tmp_path: Path) -> None:
        write_manifest("tasks: {a: [echo]}")
        preferred = write_manifest("tasks: {b: [echo]}", name="taskforge.yml")
        assert loader.find(tmp_path) == preferred.resolve()

    def test_searches_parents(self, loader: ManifestLoader, write_manifest, tmp_path: Path) -> None:
        path = write_manifest("tasks: {a: [echo]}")
        nested = tmp_path / "src" / "deep"
        nested.mkdir(parents=True)
        assert loader.find(nested) == path.resolve()

    def test_not_found(self, loader: ManifestLoader, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.setattr(ManifestLoader, "DEFAULT_FILENAMES", ("unlikely-name-1234.yml",))
        with pytest.raises(ManifestError, match="No manifest found"):
            loader.find(tmp_path)
