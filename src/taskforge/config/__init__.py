"""TaskForge configuration system for YAML task manifests.

This module provides tools for defining tasks declaratively in YAML:

- Config Models: Pydantic models for manifest configuration
- ManifestLoader: Locate, load and validate YAML manifests

Example:
    >>> from taskforge.config import ManifestLoader
    >>>
    >>> loader = ManifestLoader()
    >>> manifest = loader.load("Taskfile.yml")
    >>> manifest.settings.parallel
    False
"""

from .loader import Manifest, ManifestLoader
from .models import (
    EngineSettings,
    ManifestConfig,
    ParameterConfig,
    TaskCallConfig,
    TaskConfig,
)

__all__ = [
    # Loader
    "Manifest",
    "ManifestLoader",
    # Models
    "EngineSettings",
    "ManifestConfig",
    "ParameterConfig",
    "TaskCallConfig",
    "TaskConfig",
]
