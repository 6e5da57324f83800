# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Build override options shared by every subcommand.

Values are validated by BuildConfiguration, not by click, so an unknown
backend produces the same ConfigurationError whether it comes from the
command line, the environment, or the project file.
"""

from functools import wraps
from pathlib import Path
from typing import Callable

import click

from .context import ApplicationContext

# option keyword -> BuildConfiguration field
_OVERRIDE_FIELDS = {
    "backend": "backend",
    "threads": "thread_count",
    "tests": "run_tests",
    "wheel": "build_wheel",
    "build_type": "build_type",
    "source_root": "source_root",
    "build_root": "build_root",
    "output_dir": "output_dir",
}

_OPTIONS = [
    click.option("-g", "--backend", metavar="NAME",
                 help="Acceleration backend (cpu, vulkan, cuda, rocm, metal, opencl)"),
    click.option("-j", "--threads", type=int, metavar="N",
                 help="Parallel compile jobs (default: host core count)"),
    click.option("--tests/--no-tests", default=None,
                 help="Run the unit test stage"),
    click.option("--wheel/--no-wheel", default=None,
                 help="Build and repair a distributable wheel"),
    click.option("--build-type", metavar="TYPE",
                 help="CMake build type (Release, Debug, RelWithDebInfo, MinSizeRel)"),
    click.option("-s", "--source-root", type=click.Path(path_type=Path),
                 help="Source tree root"),
    click.option("-b", "--build-root", type=click.Path(path_type=Path),
                 help="Build directory (default: <source-root>/build)"),
    click.option("-o", "--output-dir", type=click.Path(path_type=Path),
                 help="Final wheel directory (default: <source-root>/wheels)"),
]


def build_overrides(func: Callable) -> Callable:
    """Add the override options to a command and fold them into the context.

    The wrapped command receives the ApplicationContext (``@click.pass_obj``
    style) and none of the override keywords.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        ctx: ApplicationContext = click.get_current_context().obj
        overrides = {field: kwargs.pop(option) for option, field in _OVERRIDE_FIELDS.items()}
        ctx.apply_overrides(**overrides)
        return func(ctx, *args, **kwargs)

    for option in reversed(_OPTIONS):
        wrapper = option(wrapper)
    return wrapper
