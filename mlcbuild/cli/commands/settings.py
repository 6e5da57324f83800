# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging

import click

from ..context import ApplicationContext
from ..messages import SETTINGS_UNCHANGED, SETTINGS_WRITTEN
from ..options import build_overrides
from ..utils import console, success

logger = logging.getLogger(__name__)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@build_overrides
@click.option("--write", "-w", is_flag=True,
              help="Write the settings file into the build directory instead of printing it")
def settings(ctx: ApplicationContext, write: bool) -> None:
    """Print the generated CMake settings file for the selected backend."""
    from mlcbuild.pipeline import generate_settings, settings_path

    config = ctx.get_effective_config()
    generated = generate_settings(config)

    if not write:
        # Plain output so the result can be redirected into a file
        click.echo(generated.render(), nl=False)
        return

    path = settings_path(config)
    if generated.write(path):
        success(SETTINGS_WRITTEN.format(path=path))
    else:
        console.print(SETTINGS_UNCHANGED.format(path=path))
