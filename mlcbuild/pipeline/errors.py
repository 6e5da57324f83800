# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Error taxonomy for the build pipeline.

Fatal conditions halt the pipeline and are surfaced to the caller verbatim.
RepairWarning is the only recoverable condition: it is collected into the
report instead of being raised.

Each fatal error carries a suggested process exit code, following the same
pattern as structured CLI errors (class-level ``exit_code``).
"""

from rich.markup import escape

from .constants import ExitCode


class MLCBuildError(Exception):
    """Base exception for all mlcbuild errors.

    Attributes:
        message: Main error message
        details: Optional list of additional detail lines
        exit_code: Suggested exit code for this error type (class attribute)
    """

    exit_code: int = ExitCode.ERROR

    def __init__(self, message: str, details: list[str] | None = None):
        self.message = message
        self.details = details or []
        super().__init__(message)

    def format_for_console(self) -> str:
        """Format error message for console output.

        Returns:
            Formatted error message with details
        """
        lines = [f"[red]Error:[/red] {escape(self.message)}"]
        if self.details:
            lines.append("")
            for detail in self.details:
                lines.append(f"  • {escape(detail)}")
        return "\n".join(lines)


class ConfigurationError(MLCBuildError):
    """Invalid or unrecognized configuration value.

    Always raised before any stage runs.
    """

    exit_code = ExitCode.CONFIG


class ExecutionError(MLCBuildError):
    """The build environment prevented a stage from running.

    Raised when an external tool could not be started at all (missing program,
    no permission) or when a stage could not create or remove its files.
    ``program`` is None for filesystem problems.
    """

    exit_code = ExitCode.UNAVAILABLE

    def __init__(self, message: str, program: str | None = None, details: list[str] | None = None):
        self.program = program
        super().__init__(message, details)


class StageFailure(MLCBuildError):
    """External tool ran and exited nonzero (or did not print its success marker)."""

    def __init__(self, result, details: list[str] | None = None):
        self.result = result
        if result.error:
            message = f"Stage '{result.stage.name}' failed: {result.error}"
        else:
            message = f"Stage '{result.stage.name}' failed with exit code {result.exit_code}"
        super().__init__(message, details)

    @property
    def exit_code(self) -> int:
        return self.result.stage.name.exit_code


class MissingArtifactError(MLCBuildError):
    """A stage succeeded but an expected output file is absent."""

    def __init__(self, stage_name, missing: list, details: list[str] | None = None):
        self.stage_name = stage_name
        self.missing = list(missing)
        listing = ", ".join(str(artifact.path) for artifact in self.missing)
        super().__init__(
            f"Stage '{stage_name}' completed but produced no {listing}",
            details,
        )

    @property
    def exit_code(self) -> int:
        return self.stage_name.exit_code


class RepairWarning(UserWarning):
    """Binary repair failed or is unsupported; the unrepaired wheel was used instead."""

    def __init__(self, message: str, wheel=None):
        self.message = message
        self.wheel = wheel
        super().__init__(message)
