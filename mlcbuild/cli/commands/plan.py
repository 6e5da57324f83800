# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging

import click

from ..context import ApplicationContext
from ..formatters import PlanFormatter
from ..options import build_overrides
from ..utils import console

logger = logging.getLogger(__name__)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@build_overrides
def plan(ctx: ApplicationContext) -> None:
    """Show the stages a build would run, without running anything."""
    from mlcbuild.pipeline import build_stages, generate_settings

    config = ctx.get_effective_config()
    settings = generate_settings(config)
    stages = build_stages(config)

    formatter = PlanFormatter()
    console.print(formatter.format_table(stages, config))
    console.print(formatter.format_settings_summary(settings))
