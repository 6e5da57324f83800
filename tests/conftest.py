# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Global pytest configuration and fixtures.

Every test runs in its own temporary working directory with no MLCBUILD_*
or legacy build variables in the environment, so host settings never leak
into a configuration.
"""

import logging
import os
from pathlib import Path

import pytest
from rich.logging import RichHandler

from mlcbuild.settings import load_config
from mlcbuild.settings.loader import LEGACY_ENV_VARS
from mlcbuild.settings.schema import ENV_PREFIX


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Clean environment and a working directory inside tmp_path."""
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX) or name in LEGACY_ENV_VARS:
            monkeypatch.delenv(name, raising=False)

    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)

    root = logging.getLogger()
    saved_level = root.level

    yield

    # Undo CLI logging setup
    root.setLevel(saved_level)
    for handler in root.handlers[:]:
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)


@pytest.fixture
def source_root(tmp_path):
    root = tmp_path / "src"
    (root / "python").mkdir(parents=True)
    return root


@pytest.fixture
def make_config(source_root):
    """Factory for configurations rooted in the temporary source tree.

    No project file is read; keyword arguments override fields.
    """
    def _make(**overrides):
        overrides.setdefault("source_root", source_root)
        overrides.setdefault("thread_count", 4)
        return load_config(project_file=Path(os.devnull), **overrides)

    return _make
