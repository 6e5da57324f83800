# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from __future__ import annotations  # PEP 563: Postponed evaluation of annotations

import logging
from pathlib import Path

import click

from ..context import ApplicationContext
from ..formatters import ConfigFormatter
from ..messages import CONFIG_EXPORT_HINT, CONFIG_EXPORTED, EXPORT_HEADER
from ..options import build_overrides
from ..utils import console, success

logger = logging.getLogger(__name__)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@build_overrides
@click.option("--export", "export_path", type=click.Path(dir_okay=False, path_type=Path),
              metavar="FILE", help="Write the effective configuration to a YAML file")
def config(ctx: ApplicationContext, export_path: Path | None) -> None:
    """Display the effective build configuration.

    \b
    Values come from (highest priority first):
      command-line options, MLCBUILD_* environment variables,
      legacy GPU/NUM_THREADS/RUN_TESTS/BUILD_WHEEL variables,
      the mlcbuild.yaml project file, built-in defaults
    """
    effective = ctx.get_effective_config()

    if export_path is not None:
        from mlcbuild._internal.io.yaml import dump_yaml

        logger.debug(f"Exporting configuration to {export_path}")
        dump_yaml(effective.to_display_dict(), export_path, header=EXPORT_HEADER)
        success(CONFIG_EXPORTED.format(path=export_path))
        console.print(f"[dim]{CONFIG_EXPORT_HINT}[/dim]")
        return

    console.print(ConfigFormatter(console).format_table(effective))
