# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from __future__ import annotations  # PEP 563: Postponed evaluation of annotations

from typing import TYPE_CHECKING

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .utils import format_duration, format_status, format_warning_status

# Lazy import settings
if TYPE_CHECKING:
    from mlcbuild.pipeline import GeneratedSettings, PipelineReport, Stage
    from mlcbuild.settings import BuildConfiguration

_SOURCE_DEFAULT = "default"
_SOURCE_SET = "set"


class ConfigFormatter:
    """Formatter for displaying the build configuration."""

    def __init__(self, console: RichConsole | None = None):
        self.console = console or RichConsole()

    def format_banner(self, config: BuildConfiguration) -> Panel:
        """Short summary printed before a build starts."""
        backend = config.backend.value
        if config.backend.value == "cpu":
            compat = config.cpu_compat_backend.value if config.cpu_compat_backend else "none"
            backend = f"cpu (compatibility backend: {compat})"

        lines = [
            f"[cyan]Backend:[/cyan]     {backend}",
            f"[cyan]Build type:[/cyan]  {config.build_type.value}",
            f"[cyan]Threads:[/cyan]     {config.thread_count}",
            f"[cyan]Source:[/cyan]      {config.source_root}",
            f"[cyan]Build dir:[/cyan]   {config.build_dir}",
            f"[cyan]Run tests:[/cyan]   {'yes' if config.run_tests else 'no'}",
            f"[cyan]Build wheel:[/cyan] {'yes' if config.build_wheel else 'no'}",
        ]
        if config.build_wheel:
            lines.append(f"[cyan]Wheels:[/cyan]      {config.wheel_dir}")
        return Panel("\n".join(lines), title="mlcbuild", border_style="cyan")

    def format_table(self, config: BuildConfiguration) -> Table:
        """Format configuration as Rich table.

        The Source column tells explicitly set values apart from defaults.
        """
        table = Table(title="Build Configuration")
        table.add_column("Setting", style="cyan", no_wrap=True)
        table.add_column("Value")
        table.add_column("Source", style="yellow")

        explicit = config.model_fields_set
        for name, value in config.to_display_dict().items():
            if isinstance(value, list):
                value = " ".join(value) if value else "-"
            elif value is None:
                value = "none"
            source = _SOURCE_SET if name in explicit else _SOURCE_DEFAULT
            table.add_row(name, escape(str(value)), source)
        return table


class PlanFormatter:
    """Formatter for the stage list shown by ``mlcbuild plan``."""

    def format_table(self, stages: list[Stage], config: BuildConfiguration) -> Table:
        table = Table(title="Build Plan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Stage", style="cyan", no_wrap=True)
        table.add_column("Command")
        table.add_column("Working directory", style="dim")

        for index, stage in enumerate(stages, start=1):
            name = stage.name.value
            if stage.should_skip(config):
                name = f"[dim]{name} (skipped)[/dim]"
            commands = "\n".join(escape(command.display()) for command in stage.commands)
            cwd = "\n".join(str(command.cwd) for command in stage.commands)
            table.add_row(str(index), name, commands, cwd)
        return table

    def format_settings_summary(self, settings: GeneratedSettings) -> str:
        enabled = ", ".join(settings.enabled_accelerators()) or "none"
        return f"Accelerators: {enabled}\nSettings digest: {settings.digest()[:16]}"


class ReportFormatter:
    """Formatter for a finished PipelineReport."""

    def format_table(self, report: PipelineReport) -> Table:
        table = Table(title="Build Report")
        table.add_column("Stage", style="cyan", no_wrap=True)
        table.add_column("Outcome")
        table.add_column("Exit code", justify="right")
        table.add_column("Elapsed", justify="right")

        for result in report.results:
            outcome = format_status("passed" if result.ok else "failed", result.ok)
            if result.ok and result.name is report.failed_stage:
                # Tool exited 0 but the post-stage check failed
                outcome = format_status(_post_check_outcome(report.error), False)
            table.add_row(
                result.name.value,
                outcome,
                str(result.exit_code),
                format_duration(result.elapsed),
            )

        if report.failed_stage is not None and report.result_for(report.failed_stage) is None:
            # Failed before producing a result (tool missing)
            table.add_row(report.failed_stage.value, format_status("not started", False), "-", "-")

        if report.warnings:
            table.caption = format_warning_status(f"{len(report.warnings)} warning(s)")
        return table

    def format_failure_tail(self, report: PipelineReport, max_lines: int) -> str | None:
        """Last diagnostic lines of the failed stage, if it produced any."""
        if report.failed_stage is None:
            return None
        result = report.result_for(report.failed_stage)
        if result is None:
            return None
        tail = result.diagnostic_tail()
        if not tail:
            return None
        lines = tail.splitlines()[-max_lines:]
        return escape("\n".join(lines))


def _post_check_outcome(error: Exception | None) -> str:
    from mlcbuild.pipeline import MissingArtifactError

    if isinstance(error, MissingArtifactError):
        return "missing artifacts"
    return "failed"
