# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from __future__ import annotations  # PEP 563: Postponed evaluation of annotations

import logging
import sys
from typing import TYPE_CHECKING

import click
from rich.markup import escape
from rich.status import Status

from ..constants import FAILURE_TAIL_LINES
from ..context import ApplicationContext
from ..formatters import ConfigFormatter, ReportFormatter
from ..messages import (
    BUILD_FAILED,
    BUILD_RERUN_HINT,
    BUILD_SUCCEEDED,
    REPAIR_FALLBACK_HINT,
)
from ..options import build_overrides
from ..utils import console, format_duration, show_panel, success, tip, warning

# Pipeline imported lazily inside the command to keep --help fast
if TYPE_CHECKING:
    from mlcbuild.pipeline import Stage, StageResult

logger = logging.getLogger(__name__)


def _make_listener(show_spinner: bool):
    from mlcbuild.pipeline import PipelineListener

    class ConsoleListener(PipelineListener):
        """Prints one line per stage, with a spinner while the stage runs."""

        def __init__(self):
            self._status: Status | None = None

        def stage_started(self, stage: Stage) -> None:
            if show_spinner:
                self._status = console.status(f"Running {stage.name} ...", spinner="dots")
                self._status.start()
            else:
                console.print(f"[bold]→ {stage.name}[/bold]")

        def stage_skipped(self, stage: Stage) -> None:
            console.print(f"[dim]- {stage.name} (skipped)[/dim]")

        def stage_finished(self, result: StageResult) -> None:
            self.close()
            elapsed = format_duration(result.elapsed)
            if result.ok:
                success(f"{result.name} [dim]({elapsed})[/dim]")
            else:
                console.print(f"[red]✗[/red] {result.name} [dim]({elapsed})[/dim]")

        def close(self) -> None:
            if self._status is not None:
                self._status.stop()
                self._status = None

    return ConsoleListener()


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@build_overrides
def build(ctx: ApplicationContext) -> None:
    """Configure, compile, install and validate; optionally test and package.

    \b
    Stages run in a fixed order and the first failure stops the build:
      configure → compile → install → validate → [test] → [package]

    Exits 0 on success, otherwise with a code naming the failed stage.
    """
    from mlcbuild.pipeline import Pipeline

    config = ctx.get_effective_config()
    console.print(ConfigFormatter(console).format_banner(config))
    logger.info(f"Starting build with backend={config.backend.value}, threads={config.thread_count}")

    # A live spinner would interleave with streamed tool output
    listener = _make_listener(show_spinner=not (ctx.no_progress or ctx.streams_output))
    try:
        report = Pipeline(listener=listener).execute(config)
    finally:
        listener.close()

    formatter = ReportFormatter()
    console.print()
    console.print(formatter.format_table(report))

    if report.warnings:
        warning(
            f"{len(report.warnings)} wheel(s) were not repaired",
            details=[escape(w.message) for w in report.warnings],
        )
        tip(REPAIR_FALLBACK_HINT)

    if report.succeeded:
        success(f"{BUILD_SUCCEEDED} in {format_duration(report.total_time)}")
        for artifact in report.artifacts:
            console.print(f"  [dim]{artifact.kind.value}:[/dim] {artifact.path}")
        return

    tail = formatter.format_failure_tail(report, FAILURE_TAIL_LINES)
    if tail:
        show_panel(f"Last output of {report.failed_stage}", tail, border_style="red")

    console.print(f"\n[red]{BUILD_FAILED}[/red]")
    if report.error is not None:
        console.print(report.error.format_for_console())
    if not ctx.streams_output:
        tip(BUILD_RERUN_HINT)

    sys.exit(report.exit_code)
