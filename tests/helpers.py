# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Shared test helpers: scripted runners and fake stage outputs."""

import sys
from pathlib import Path

from mlcbuild.pipeline import ArtifactKind, StageName, StageResult

WHEEL_NAME = "mlc_llm-0.1.0-cp311-cp311-linux_x86_64.whl"


def python_command(code: str) -> tuple[str, ...]:
    """argv running ``code`` in the current interpreter."""
    return (sys.executable, "-c", code)


def produce_outputs(stage) -> None:
    """Create the files a real stage would leave behind."""
    for artifact in stage.required_artifacts:
        if artifact.kind is ArtifactKind.SHARED_LIBRARY:
            artifact.path.parent.mkdir(parents=True, exist_ok=True)
            artifact.path.write_bytes(b"\x7fELF")

    if stage.name is StageName.PACKAGE:
        argv = stage.command.argv
        staging = Path(argv[argv.index("-w") + 1])
        staging.mkdir(parents=True, exist_ok=True)
        (staging / WHEEL_NAME).write_bytes(b"PK")


class ScriptedRunner:
    """Stand-in for StageRunner that never starts a process.

    Args:
        exit_codes: Exit code per stage (default 0)
        produce: Whether successful stages create their outputs
        raises: Exception raised when a given stage runs
    """

    def __init__(self, exit_codes=None, produce=True, raises=None):
        self.exit_codes = exit_codes or {}
        self.produce = produce
        self.raises = raises or {}
        self.ran: list[StageName] = []

    def run(self, stage, settings=None):
        self.ran.append(stage.name)
        if stage.settings_file is not None:
            settings.write(stage.settings_file)

        if stage.name in self.raises:
            raise self.raises[stage.name]

        exit_code = self.exit_codes.get(stage.name, 0)
        if exit_code == 0 and self.produce:
            produce_outputs(stage)

        stderr = (f"{stage.name}: simulated failure",) if exit_code else ()
        return StageResult(stage=stage, exit_code=exit_code, elapsed=0.01, stderr_tail=stderr)


