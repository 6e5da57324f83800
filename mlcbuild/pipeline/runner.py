# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Stage execution: runs the external commands of one stage.

A nonzero exit is reported through the returned StageResult, never raised;
the pipeline decides whether it is fatal. A program that cannot be started
at all raises ExecutionError instead.

Child output is streamed line by line to the ``mlcbuild.pipeline.runner``
logger (stdout at INFO, stderr at WARNING) and the last ``tail_lines`` lines
of each stream are kept for diagnostics.

If the orchestrator is interrupted while a command runs, the whole child
process tree is terminated before the interruption propagates.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections import deque
from typing import IO, TYPE_CHECKING

import psutil

from .constants import DEFAULT_TAIL_LINES, TERMINATE_GRACE_SECONDS
from .errors import ExecutionError
from .types import Command, Stage, StageResult

if TYPE_CHECKING:
    from .generator import GeneratedSettings

logger = logging.getLogger(__name__)


def terminate_process_tree(pid: int, timeout: float = TERMINATE_GRACE_SECONDS) -> None:
    """Terminate a process and all of its descendants.

    Sends SIGTERM to the whole tree, waits up to ``timeout`` seconds, then
    kills whatever is still alive.
    """
    try:
        parent = psutil.Process(pid)
        procs = parent.children(recursive=True) + [parent]
    except psutil.NoSuchProcess:
        return

    for proc in procs:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            pass

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        logger.warning("Killing unresponsive process %d", proc.pid)
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            pass


class _StreamPump(threading.Thread):
    """Reads one child stream, logging each line and keeping a bounded tail."""

    def __init__(
        self,
        stream: IO[str],
        stream_logger: logging.Logger,
        level: int,
        tail_lines: int,
        marker: str | None = None,
    ):
        super().__init__(daemon=True)
        self.stream = stream
        self.stream_logger = stream_logger
        self.level = level
        self.tail: deque[str] = deque(maxlen=tail_lines)
        self.marker = marker
        self.marker_seen = False

    def run(self) -> None:
        with self.stream:
            for line in self.stream:
                line = line.rstrip("\r\n")
                self.tail.append(line)
                if line.strip():
                    self.stream_logger.log(self.level, line)
                if self.marker and self.marker in line:
                    self.marker_seen = True


class StageRunner:
    """Runs the commands of a single stage and captures the outcome.

    Args:
        tail_lines: Number of trailing output lines kept per stream
        env: Environment for child processes (defaults to the current one)
    """

    def __init__(self, tail_lines: int = DEFAULT_TAIL_LINES, env: dict[str, str] | None = None):
        self.tail_lines = tail_lines
        self.env = env

    def run(self, stage: Stage, settings: GeneratedSettings | None = None) -> StageResult:
        """Run ``stage`` to completion.

        If the stage declares a settings file, ``settings`` is written there
        before the first command starts.

        Returns:
            StageResult; ``exit_code`` is that of the last command run

        Raises:
            ExecutionError: If a command's program could not be started
        """
        if stage.settings_file is not None:
            if settings is None:
                raise ValueError(f"Stage '{stage.name}' requires generated settings")
            settings.write(stage.settings_file)

        stage_logger = logger.getChild(stage.name.value)
        start = time.monotonic()
        result = StageResult(stage=stage, exit_code=0)

        for command in stage.commands:
            stage_logger.info("Running: %s", command.display())
            exit_code, stdout, stderr = self._execute(command, stage_logger)
            result.exit_code = exit_code
            result.stdout_tail = tuple(stdout.tail)
            result.stderr_tail = tuple(stderr.tail)

            if exit_code != 0:
                logger.error("%s exited with code %d", command.display(), exit_code)
                break

            if command.expect_output and not stdout.marker_seen:
                result.error = (
                    f"'{command.display()}' exited 0 but did not print "
                    f"'{command.expect_output}'"
                )
                logger.error(result.error)
                break

        result.elapsed = time.monotonic() - start
        return result

    def _execute(
        self, command: Command, stage_logger: logging.Logger
    ) -> tuple[int, _StreamPump, _StreamPump]:
        try:
            process = subprocess.Popen(
                list(command.argv),
                cwd=command.cwd,
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise ExecutionError(
                f"Could not execute '{command.program}': {e.strerror or e}",
                program=command.program,
                details=[
                    f"Command: {command.display()}",
                    f"Working directory: {command.cwd}",
                ],
            ) from e

        stdout = _StreamPump(
            process.stdout, stage_logger, logging.INFO, self.tail_lines, command.expect_output
        )
        stderr = _StreamPump(process.stderr, stage_logger, logging.WARNING, self.tail_lines)
        stdout.start()
        stderr.start()

        try:
            exit_code = process.wait()
        except BaseException:
            # Interrupted (Ctrl-C, SIGTERM turned into SystemExit): no orphans
            logger.warning("Interrupted, terminating %s", command.display())
            terminate_process_tree(process.pid)
            process.wait()
            raise
        finally:
            stdout.join()
            stderr.join()

        return exit_code, stdout, stderr
