# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Fixed stage table.

Every stage carries explicit working directories; nothing relies on the
orchestrator's own current directory.

    configure  write <build>/config.cmake, cmake <source> -G <generator>
    compile    cmake --build <build> --parallel <threads>
    install    <python> -m pip install [-e] .            (in <source>/python)
    validate   <cli> -h, then the runtime import probe
    test       <python> -m pytest ...                     (only if run_tests)
    package    <python> -m pip wheel --no-deps -w ...     (only if build_wheel)
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from .constants import (
    HELP_FLAG,
    IMPORT_SUCCESS_MARKER,
    PYTHON_PACKAGE_DIR,
    SETTINGS_FILE_NAME,
    WHEEL_STAGING_DIR,
)
from .types import Artifact, ArtifactKind, Command, Stage, StageName

if TYPE_CHECKING:
    from mlcbuild.settings import BuildConfiguration


def settings_path(config: BuildConfiguration) -> Path:
    """Location of the generated settings file."""
    return config.build_dir / SETTINGS_FILE_NAME


def wheel_staging_dir(config: BuildConfiguration) -> Path:
    """Where unrepaired wheels are built before repair."""
    return config.build_dir / WHEEL_STAGING_DIR


def import_probe_code(package_name: str) -> str:
    return (
        f"import {package_name}; "
        f"print({IMPORT_SUCCESS_MARKER!r}, getattr({package_name}, '__version__', 'unknown'))"
    )


def _skip_tests(config: BuildConfiguration) -> bool:
    return not config.run_tests


def _skip_package(config: BuildConfiguration) -> bool:
    return not config.build_wheel


def build_stages(config: BuildConfiguration) -> list[Stage]:
    """Build the ordered stage list for ``config``.

    Optional stages are always present; their skip conditions decide
    whether they run.
    """
    source = config.source_root
    build = config.build_dir
    package_dir = source / PYTHON_PACKAGE_DIR

    configure = Stage(
        name=StageName.CONFIGURE,
        commands=(
            Command(("cmake", str(source), "-G", config.cmake_generator), cwd=build),
        ),
        settings_file=settings_path(config),
    )

    compile_ = Stage(
        name=StageName.COMPILE,
        commands=(
            Command(
                ("cmake", "--build", str(build), "--parallel", str(config.thread_count)),
                cwd=build,
            ),
        ),
        required_artifacts=frozenset(
            Artifact(build / name, ArtifactKind.SHARED_LIBRARY)
            for name in config.required_libraries
        ),
    )

    install_argv = [config.python, "-m", "pip", "install"]
    if config.editable_install:
        install_argv.append("-e")
    install_argv.append(".")
    install = Stage(
        name=StageName.INSTALL,
        commands=(Command(tuple(install_argv), cwd=package_dir),),
    )

    validate = Stage(
        name=StageName.VALIDATE,
        commands=(
            Command((*config.cli_command, HELP_FLAG), cwd=source),
            Command(
                (config.python, "-c", import_probe_code(config.package_name)),
                cwd=source,
                expect_output=IMPORT_SUCCESS_MARKER,
            ),
        ),
    )

    test_argv = [config.python, "-m", "pytest", "-v", *config.test_paths]
    if config.test_marker:
        test_argv.extend(["-m", config.test_marker])
    test_argv.extend(f"--ignore={path}" for path in config.test_ignores)
    test = Stage(
        name=StageName.TEST,
        commands=(Command(tuple(test_argv), cwd=source),),
        skip_condition=_skip_tests,
    )

    package = Stage(
        name=StageName.PACKAGE,
        commands=(
            Command(
                (config.python, "-m", "pip", "wheel", "--no-deps",
                 "-w", str(wheel_staging_dir(config)), "."),
                cwd=package_dir,
            ),
        ),
        required_artifacts=frozenset(
            [Artifact(config.wheel_dir, ArtifactKind.WHEEL_PACKAGE)]
        ),
        skip_condition=_skip_package,
    )

    return [configure, compile_, install, validate, test, package]
