# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Fail-fast build pipeline.

State machine::

    PENDING → CONFIGURING → COMPILING → INSTALLING → VALIDATING
            → [TESTING] → [PACKAGING] → SUCCEEDED

Any fatal condition moves straight to FAILED and no further stage runs.
TESTING and PACKAGING are entered only when ``run_tests`` / ``build_wheel``
are set. Nothing is retried: stage side effects are not safely re-runnable
without cleaning prior state, so retries are left to the operator.

Running two pipelines against the same build or output directory at the
same time is not supported and may corrupt artifacts.
"""

from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING, Callable

from .errors import (
    ConfigurationError,
    ExecutionError,
    MissingArtifactError,
    MLCBuildError,
    StageFailure,
)
from .generator import ConfigGenerator, GeneratedSettings
from .inspector import ArtifactInspector, find_wheels
from .repair import ExclusionList, PackageRepairer, PlatformTag
from .runner import StageRunner
from .stages import build_stages, wheel_staging_dir
from .types import (
    Artifact,
    ArtifactKind,
    PipelineReport,
    PipelineState,
    Stage,
    StageName,
    StageResult,
)

if TYPE_CHECKING:
    from mlcbuild.settings import BuildConfiguration

logger = logging.getLogger(__name__)


class PipelineListener:
    """Receives progress notifications. All methods are no-ops by default."""

    def pipeline_started(self, config: BuildConfiguration, settings: GeneratedSettings) -> None:
        pass

    def stage_started(self, stage: Stage) -> None:
        pass

    def stage_skipped(self, stage: Stage) -> None:
        pass

    def stage_finished(self, result: StageResult) -> None:
        pass


class Pipeline:
    """Runs the fixed stage sequence for one configuration.

    Args:
        runner: Executes stages (defaults to a StageRunner using the config's tail length)
        inspector: Verifies stage outputs
        generator: Produces the build settings
        platform: Host platform for wheel repair (detected when omitted)
        listener: Progress notifications
        stages_factory: Builds the ordered stage list from a configuration
    """

    def __init__(
        self,
        runner: StageRunner | None = None,
        inspector: ArtifactInspector | None = None,
        generator: ConfigGenerator | None = None,
        platform: PlatformTag | None = None,
        listener: PipelineListener | None = None,
        stages_factory: Callable[[BuildConfiguration], list[Stage]] = build_stages,
    ) -> None:
        self.runner = runner
        self.inspector = inspector or ArtifactInspector()
        self.generator = generator or ConfigGenerator()
        self.platform = platform
        self.listener = listener or PipelineListener()
        self.stages_factory = stages_factory
        self.state = PipelineState.PENDING

    def execute(self, config: BuildConfiguration) -> PipelineReport:
        """Run every enabled stage in order.

        Returns:
            PipelineReport with the ordered stage results and the final state.
            Fatal errors are recorded in the report, not raised.
        """
        report = PipelineReport()
        self.state = PipelineState.PENDING
        report.transitions.append(self.state)

        try:
            settings = self.generator.generate(config)
        except ConfigurationError as e:
            return self._fail(report, e, None)

        logger.debug("Generated settings digest %s", settings.digest())
        self.listener.pipeline_started(config, settings)

        runner = self.runner or StageRunner(tail_lines=config.tail_lines)
        stages = self.stages_factory(config)
        _check_order(stages)

        for stage in stages:
            if stage.should_skip(config):
                logger.info("Skipping stage %s", stage.name)
                self.listener.stage_skipped(stage)
                continue

            self._transition(report, stage.name.state)
            self.listener.stage_started(stage)

            try:
                self._prepare(stage, config)
                result = runner.run(stage, settings)
            except ExecutionError as e:
                return self._fail(report, e, stage.name)
            except OSError as e:
                return self._fail(report, _filesystem_error(stage, e), stage.name)

            report.results.append(result)
            self.listener.stage_finished(result)

            if not result.ok:
                failure = StageFailure(
                    result,
                    details=[f"Command: {cmd.display()}" for cmd in stage.commands],
                )
                return self._fail(report, failure, stage.name)

            try:
                report.artifacts.extend(self._gate(stage, config, report))
            except MissingArtifactError as e:
                return self._fail(report, e, stage.name)
            except OSError as e:
                return self._fail(report, _filesystem_error(stage, e), stage.name)

        self._transition(report, PipelineState.SUCCEEDED)
        logger.info("Pipeline succeeded after %d stages", len(report.results))
        return report

    def _prepare(self, stage: Stage, config: BuildConfiguration) -> None:
        """Clear stale wheels so only this run's output is repaired."""
        if stage.name is StageName.PACKAGE:
            staging = wheel_staging_dir(config)
            if staging.exists():
                shutil.rmtree(staging)

    def _gate(
        self, stage: Stage, config: BuildConfiguration, report: PipelineReport
    ) -> list[Artifact]:
        """Post-stage checks that decide whether the pipeline may continue."""
        if stage.name is StageName.PACKAGE:
            self._repair_wheels(config, report)

        if not stage.required_artifacts:
            return []
        return self.inspector.verify(stage.required_artifacts, stage.name)

    def _repair_wheels(self, config: BuildConfiguration, report: PipelineReport) -> None:
        staging = wheel_staging_dir(config)
        built = find_wheels(staging)
        if not built:
            raise MissingArtifactError(
                StageName.PACKAGE,
                [Artifact(staging, ArtifactKind.WHEEL_PACKAGE)],
                details=["The packaging tool exited 0 but wrote no wheel"],
            )

        repairer = PackageRepairer(config.wheel_dir, tool=config.repair_tool)
        exclusions = ExclusionList.for_backend(config.backend, config.exclude_libraries)
        platform = self.platform or PlatformTag.host()

        for wheel in built:
            repairer.repair(wheel, exclusions, platform)

        report.warnings.extend(repairer.warnings)

    def _transition(self, report: PipelineReport, state: PipelineState) -> None:
        logger.debug("Pipeline state %s → %s", self.state.value, state.value)
        self.state = state
        report.state = state
        report.transitions.append(state)

    def _fail(
        self, report: PipelineReport, error: MLCBuildError, stage: StageName | None
    ) -> PipelineReport:
        logger.error("%s", error.message)
        report.error = error
        report.failed_stage = stage
        self._transition(report, PipelineState.FAILED)
        return report


def _filesystem_error(stage: Stage, error: OSError) -> ExecutionError:
    details = [f"Path: {error.filename}"] if error.filename else None
    return ExecutionError(
        f"Stage '{stage.name}' could not access its files: {error.strerror or error}",
        details=details,
    )


def _check_order(stages: list[Stage]) -> None:
    order = list(StageName)
    positions = [order.index(stage.name) for stage in stages]
    if positions != sorted(set(positions)):
        raise ValueError(
            "Stages must be unique and in pipeline order: "
            + ", ".join(str(stage.name) for stage in stages)
        )


def run_pipeline(config: BuildConfiguration, **kwargs) -> PipelineReport:
    """Convenience wrapper: ``Pipeline(**kwargs).execute(config)``."""
    return Pipeline(**kwargs).execute(config)
