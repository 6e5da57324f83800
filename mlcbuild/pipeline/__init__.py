# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Build pipeline: settings generation, stage execution, artifact checks and wheel repair."""

from .errors import (
    ConfigurationError,
    ExecutionError,
    MissingArtifactError,
    MLCBuildError,
    RepairWarning,
    StageFailure,
)
from .generator import ConfigGenerator, GeneratedSettings, generate_settings
from .inspector import ArtifactInspector, find_wheels
from .pipeline import Pipeline, PipelineListener, run_pipeline
from .repair import ExclusionList, PackageRepairer, PlatformTag
from .runner import StageRunner, terminate_process_tree
from .stages import build_stages, settings_path, wheel_staging_dir
from .types import (
    Artifact,
    ArtifactKind,
    Backend,
    BuildType,
    Command,
    PipelineReport,
    PipelineState,
    Stage,
    StageName,
    StageResult,
)

__all__ = [
    # Errors
    "MLCBuildError",
    "ConfigurationError",
    "ExecutionError",
    "StageFailure",
    "MissingArtifactError",
    "RepairWarning",
    # Types
    "Artifact",
    "ArtifactKind",
    "Backend",
    "BuildType",
    "Command",
    "PipelineReport",
    "PipelineState",
    "Stage",
    "StageName",
    "StageResult",
    # Components
    "ConfigGenerator",
    "GeneratedSettings",
    "generate_settings",
    "StageRunner",
    "terminate_process_tree",
    "ArtifactInspector",
    "find_wheels",
    "ExclusionList",
    "PackageRepairer",
    "PlatformTag",
    "Pipeline",
    "PipelineListener",
    "run_pipeline",
    "build_stages",
    "settings_path",
    "wheel_staging_dir",
]
