# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Logging setup for mlcbuild: standard logging rendered by Rich.

Usage:
    from mlcbuild._internal.logging import setup_logging

    setup_logging(level="info")

Output of external tools arrives on ``mlcbuild.pipeline.runner.<stage>``
loggers and is shown with the stage name in front of each line.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rich.console import Console

LEVEL_MAP = {
    'error': logging.ERROR,
    'warning': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
}

TOOL_OUTPUT_LOGGER = "mlcbuild.pipeline.runner"


class ToolOutputFormatter(logging.Formatter):
    """Prefixes tool output lines with their stage: ``compile | [42/310] ...``."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        prefix = TOOL_OUTPUT_LOGGER + "."
        if record.name.startswith(prefix):
            stage = record.name[len(prefix):]
            return f"{stage} | {message}"
        return message


def setup_logging(level: str = "warning", console: Console | None = None) -> None:
    """Route the root logger through a RichHandler at ``level``.

    Pass the console used for spinners and tables as ``console`` so log lines
    are printed above a live status instead of through it.

    Unknown level names fall back to WARNING. Calling again only adjusts
    the level of the RichHandler already installed; other handlers (such as
    a test runner's capture handler) are left alone.
    """
    from rich.logging import RichHandler

    log_level = LEVEL_MAP.get(level.lower(), logging.WARNING)

    root = logging.getLogger()
    root.setLevel(log_level)

    installed = [h for h in root.handlers if isinstance(h, RichHandler)]
    if installed:
        for handler in installed:
            handler.setLevel(log_level)
        return

    # Tool output may contain brackets; never interpret it as markup
    handler = RichHandler(
        rich_tracebacks=(log_level == logging.DEBUG),
        show_path=False,
        show_time=False,
        markup=False,
        console=console,
    )
    handler.setLevel(log_level)
    handler.setFormatter(ToolOutputFormatter("%(message)s"))
    root.addHandler(handler)
