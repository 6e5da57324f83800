# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from .constants import ExitCode

if TYPE_CHECKING:
    from mlcbuild.settings import BuildConfiguration
    from .errors import MLCBuildError, RepairWarning


class Backend(Enum):
    """Hardware acceleration target compiled into the native library.

    Attributes:
        CPU: No dedicated accelerator (may still enable a compatibility shim)
        VULKAN: Portable GPU API
        CUDA: NVIDIA toolkit
        ROCM: AMD toolkit
        METAL: Apple GPU API
        OPENCL: Portable compute API
    """

    CPU = "cpu"
    VULKAN = "vulkan"
    CUDA = "cuda"
    ROCM = "rocm"
    METAL = "metal"
    OPENCL = "opencl"

    @classmethod
    def accelerators(cls) -> list[Backend]:
        """All backends that map to an accelerator flag in the settings file."""
        return [backend for backend in cls if backend is not cls.CPU]


class BuildType(Enum):
    """CMake build type."""

    RELEASE = "Release"
    DEBUG = "Debug"
    REL_WITH_DEB_INFO = "RelWithDebInfo"
    MIN_SIZE_REL = "MinSizeRel"


class ArtifactKind(Enum):
    SHARED_LIBRARY = "shared_library"
    WHEEL_PACKAGE = "wheel_package"


@dataclass(frozen=True)
class Artifact:
    """A produced file checked for existence only.

    For WHEEL_PACKAGE artifacts the path may name a directory, meaning
    "at least one wheel inside this directory".
    """

    path: Path
    kind: ArtifactKind

    @property
    def name(self) -> str:
        return self.path.name


class PipelineState(Enum):
    """Pipeline state machine states, in transition order."""

    PENDING = "pending"
    CONFIGURING = "configuring"
    COMPILING = "compiling"
    INSTALLING = "installing"
    VALIDATING = "validating"
    TESTING = "testing"
    PACKAGING = "packaging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class StageName(Enum):
    """Fixed pipeline stages. Definition order is execution order."""

    CONFIGURE = "configure"
    COMPILE = "compile"
    INSTALL = "install"
    VALIDATE = "validate"
    TEST = "test"
    PACKAGE = "package"

    def __str__(self) -> str:
        return self.value

    @property
    def state(self) -> PipelineState:
        """State the pipeline is in while this stage runs."""
        return _STAGE_STATES[self]

    @property
    def exit_code(self) -> int:
        """Exit code reported when this stage is the one that failed."""
        return _STAGE_EXIT_CODES[self]


_STAGE_STATES = {
    StageName.CONFIGURE: PipelineState.CONFIGURING,
    StageName.COMPILE: PipelineState.COMPILING,
    StageName.INSTALL: PipelineState.INSTALLING,
    StageName.VALIDATE: PipelineState.VALIDATING,
    StageName.TEST: PipelineState.TESTING,
    StageName.PACKAGE: PipelineState.PACKAGING,
}

_STAGE_EXIT_CODES = {
    StageName.CONFIGURE: ExitCode.CONFIGURE_FAILED,
    StageName.COMPILE: ExitCode.COMPILE_FAILED,
    StageName.INSTALL: ExitCode.INSTALL_FAILED,
    StageName.VALIDATE: ExitCode.VALIDATE_FAILED,
    StageName.TEST: ExitCode.TEST_FAILED,
    StageName.PACKAGE: ExitCode.PACKAGE_FAILED,
}


@dataclass(frozen=True)
class Command:
    """One external program invocation.

    Attributes:
        argv: Program and arguments (no shell involved)
        cwd: Working directory for the process
        expect_output: Marker that must appear on stdout for the command to count as successful
    """

    argv: tuple[str, ...]
    cwd: Path
    expect_output: str | None = None

    @property
    def program(self) -> str:
        return self.argv[0]

    def display(self) -> str:
        return shlex.join(self.argv)


@dataclass(frozen=True)
class Stage:
    """One step of the pipeline.

    Attributes:
        name: Stage identity; also fixes its position in the pipeline
        commands: Invocations run in order; the first failure ends the stage
        required_artifacts: Files that must exist once the stage succeeds
        skip_condition: Predicate over the configuration; True skips the stage
        settings_file: Where the generated settings are written before the stage runs
    """

    name: StageName
    commands: tuple[Command, ...]
    required_artifacts: frozenset[Artifact] = frozenset()
    skip_condition: Callable[[BuildConfiguration], bool] | None = field(default=None, compare=False)
    settings_file: Path | None = None

    @property
    def command(self) -> Command:
        """Primary invocation of the stage."""
        return self.commands[0]

    def should_skip(self, config: BuildConfiguration) -> bool:
        return bool(self.skip_condition and self.skip_condition(config))


@dataclass
class StageResult:
    """Outcome of running one stage.

    Attributes:
        stage: Stage that ran
        exit_code: Exit code of the last command run (0 if all succeeded)
        elapsed: Wall time in seconds
        stdout_tail: Last lines of standard output
        stderr_tail: Last lines of standard error
        error: Failure reason when the exit code alone does not explain it
    """

    stage: Stage
    exit_code: int
    elapsed: float = 0.0
    stdout_tail: tuple[str, ...] = ()
    stderr_tail: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None

    @property
    def name(self) -> StageName:
        return self.stage.name

    def diagnostic_tail(self) -> str:
        """Combined diagnostic text, stderr first since that is where failures land."""
        sections = []
        if self.stderr_tail:
            sections.append("\n".join(self.stderr_tail))
        if self.stdout_tail:
            sections.append("\n".join(self.stdout_tail))
        return "\n".join(sections)


@dataclass
class PipelineReport:
    """Ordered stage results plus the final verdict of one pipeline run.

    Attributes:
        results: One entry per executed stage, in execution order
        state: Final state (SUCCEEDED or FAILED)
        error: Fatal error that ended the run, if any
        failed_stage: Stage during which the fatal error happened
        warnings: Recoverable problems (repair fallbacks)
        artifacts: Artifacts verified during the run
        transitions: Every state the pipeline entered, in order
    """

    results: list[StageResult] = field(default_factory=list)
    state: PipelineState = PipelineState.PENDING
    error: MLCBuildError | None = None
    failed_stage: StageName | None = None
    warnings: list[RepairWarning] = field(default_factory=list)
    artifacts: list[Artifact] = field(default_factory=list)
    transitions: list[PipelineState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.SUCCEEDED

    @property
    def stage_names(self) -> list[StageName]:
        return [result.name for result in self.results]

    @property
    def total_time(self) -> float:
        return sum(result.elapsed for result in self.results)

    @property
    def exit_code(self) -> int:
        if self.succeeded:
            return ExitCode.SUCCESS
        if self.error is not None:
            return int(self.error.exit_code)
        return ExitCode.ERROR

    def result_for(self, name: StageName) -> StageResult | None:
        for result in self.results:
            if result.name is name:
                return result
        return None
