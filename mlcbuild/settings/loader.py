# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Configuration loading for mlcbuild."""

import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ValidationError
from pydantic_settings import SettingsError

from mlcbuild.pipeline.errors import ConfigurationError

from .schema import ENV_PREFIX, BuildConfiguration, use_project_file

# Container-era variable names, honoured when the MLCBUILD_* form is absent
LEGACY_ENV_VARS = {
    "GPU": "backend",
    "NUM_THREADS": "thread_count",
    "RUN_TESTS": "run_tests",
    "BUILD_WHEEL": "build_wheel",
}


def _legacy_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Translate legacy variables into field overrides.

    RUN_TESTS enables tests only when it is exactly "1"; BUILD_WHEEL enables
    packaging when it is set to any non-empty value.
    """
    overrides: dict[str, Any] = {}
    for var, field in LEGACY_ENV_VARS.items():
        if var not in environ or f"{ENV_PREFIX}{field.upper()}" in environ:
            continue

        value: Any = environ[var]
        if field == "run_tests":
            value = value.strip() == "1"
        elif field == "build_wheel":
            value = bool(value)
        overrides[field] = value
    return overrides


def _format_validation_error(e: ValidationError) -> ConfigurationError:
    errors = e.errors()
    details = []
    for error in errors:
        field = " → ".join(str(x) for x in error["loc"]) or "configuration"
        details.append(f"{field}: {error['msg']} (got {error.get('input')!r})")

    first = errors[0]
    field = " → ".join(str(x) for x in first["loc"]) or "configuration"
    return ConfigurationError(
        f"Invalid value {first.get('input')!r} for '{field}'", details=details
    )


def load_config(
    project_file: Optional[Path] = None,
    **cli_overrides
) -> BuildConfiguration:
    """Load configuration with hierarchical priority.

    Priority order (highest to lowest):
    1. CLI arguments (passed as kwargs; None values are ignored)
    2. Environment variables (MLCBUILD_* prefix, then legacy GPU/NUM_THREADS/...)
    3. Project config file (mlcbuild.yaml)
    4. Built-in defaults

    Args:
        project_file: Path to project config file (skips discovery)
        **cli_overrides: CLI argument overrides

    Returns:
        BuildConfiguration object

    Raises:
        ConfigurationError: If any value is invalid or unrecognized
    """
    overrides = {key: value for key, value in cli_overrides.items() if value is not None}
    for field, value in _legacy_overrides(os.environ).items():
        overrides.setdefault(field, value)

    try:
        with use_project_file(project_file):
            return BuildConfiguration(**overrides)
    except ValidationError as e:
        raise _format_validation_error(e) from e
    except SettingsError as e:
        raise ConfigurationError(f"Invalid environment configuration: {e}") from e

