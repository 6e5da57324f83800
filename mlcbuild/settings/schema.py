# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Build configuration schema using Pydantic Settings.

A BuildConfiguration is created once per invocation and never mutated.

Configuration Priority
----------------------
Settings are loaded from multiple sources with the following priority (highest to lowest):
1. CLI arguments (passed to the BuildConfiguration constructor)
2. Environment variables (MLCBUILD_* prefix)
3. Project config file (mlcbuild.yaml)
4. Built-in defaults (Field defaults in BuildConfiguration)

Path Resolution Rules
---------------------
"Paths resolve relative to where they're specified":

1. **Full paths**: Always used as-is
2. **Relative paths from YAML**: Resolve to the directory holding the YAML file
3. **Relative paths from CLI/env/defaults**: Resolve to the current working directory

List-valued fields accept either a YAML/JSON list or, from the environment,
a shell-style string (``MLCBUILD_CLI_COMMAND="mlc_llm chat"``).
"""

import json
import logging
import os
import shlex
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Annotated, Any, Iterator

import psutil
import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, PydanticBaseSettingsSource, SettingsConfigDict

from mlcbuild._internal.io.yaml import NotAMappingError, expand_env_vars, load_mapping
from mlcbuild.pipeline.constants import DEFAULT_TAIL_LINES
from mlcbuild.pipeline.errors import ConfigurationError
from mlcbuild.pipeline.types import Backend, BuildType

logger = logging.getLogger(__name__)

ENV_PREFIX = "MLCBUILD_"
ENV_PROJECT_DIR = "MLCBUILD_PROJECT_DIR"
PROJECT_CONFIG_FILE = "mlcbuild.yaml"

_PATH_FIELDS = ("source_root", "build_root", "output_dir")
_NONE_VALUES = ("", "none", "off", "null")

# Explicit project file for the configuration being built (set by load_config)
_project_file: ContextVar[Path | None] = ContextVar("mlcbuild_project_file", default=None)


@contextmanager
def use_project_file(project_file: Path | None) -> Iterator[None]:
    """Make BuildConfiguration read ``project_file`` instead of discovering one."""
    token = _project_file.set(project_file)
    try:
        yield
    finally:
        _project_file.reset(token)


def find_project_config() -> Path | None:
    """Find project configuration file with upward directory walk.

    Search order:
    1. If MLCBUILD_PROJECT_DIR is set, check that directory only
    2. Otherwise, walk up from CWD to find mlcbuild.yaml

    Returns:
        Path to config file, or None if not found
    """
    if project_dir_override := os.environ.get(ENV_PROJECT_DIR):
        candidate = Path(project_dir_override).resolve() / PROJECT_CONFIG_FILE
        return candidate if candidate.exists() else None

    current = Path.cwd().resolve()
    while True:
        candidate = current / PROJECT_CONFIG_FILE
        if candidate.exists():
            return candidate
        if current == current.parent:
            return None
        current = current.parent


def host_core_count() -> int:
    """Logical core count of the host (at least 1)."""
    return psutil.cpu_count(logical=True) or 1


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Settings source for the project YAML file."""

    def __init__(self, settings_cls: type[BaseSettings], project_file: Path | None = None):
        super().__init__(settings_cls)
        if project_file is None:
            project_file = find_project_config()
        self.project_file = project_file
        self._data = self._load(project_file) if project_file else {}

    def _load(self, project_file: Path) -> dict[str, Any]:
        """Load, expand and path-resolve the YAML file.

        Raises:
            ConfigurationError: If the file is missing, malformed, or not a mapping
        """
        try:
            data = expand_env_vars(load_mapping(project_file))
        except FileNotFoundError as e:
            raise ConfigurationError(f"Config file not found: {project_file}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {project_file}: {e.strerror or e}") from e
        except NotAMappingError as e:
            raise ConfigurationError(
                f"Config file {project_file} must contain a mapping, got {e.found_type}"
            ) from e
        except yaml.YAMLError as e:
            if hasattr(e, "problem_mark"):
                mark = e.problem_mark
                location = f"line {mark.line + 1}, column {mark.column + 1}"
            else:
                location = "unknown location"
            raise ConfigurationError(
                f"Invalid YAML in config file: {project_file}",
                details=[f"Error at {location}: {getattr(e, 'problem', None) or e}"],
            ) from e

        base_dir = Path(project_file).resolve().parent
        for key in _PATH_FIELDS:
            value = data.get(key)
            if value is not None and not Path(value).expanduser().is_absolute():
                data[key] = str(base_dir / value)

        logger.debug("Loaded project config %s", project_file)
        return data

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        if field_name in self._data:
            return self._data[field_name], field_name, True
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        return self._data.copy()


StrList = Annotated[tuple[str, ...], NoDecode]


class BuildConfiguration(BaseSettings):
    """Declarative description of one build.

    Priority order (highest to lowest):
    1. CLI arguments (passed to constructor)
    2. Environment variables (MLCBUILD_* prefix)
    3. Project config (mlcbuild.yaml)
    4. Built-in defaults
    """

    backend: Backend = Field(default=Backend.VULKAN, description="Hardware acceleration backend")
    thread_count: int = Field(
        default_factory=host_core_count, gt=0, description="Parallel compile jobs"
    )
    run_tests: bool = Field(default=False, description="Run the unit test stage")
    build_wheel: bool = Field(default=False, description="Build and repair a distributable wheel")

    source_root: Path = Field(default=Path("."), description="Source tree root")
    build_root: Path | None = Field(
        default=None, description="Build directory (defaults to <source_root>/build)"
    )
    output_dir: Path | None = Field(
        default=None, description="Final wheel directory (defaults to <source_root>/wheels)"
    )

    build_type: BuildType = Field(default=BuildType.REL_WITH_DEB_INFO, description="CMake build type")
    tvm_source_dir: str = Field(
        default="3rdparty/tvm", description="Source dependency path written to the settings file"
    )
    cpu_compat_backend: Backend | None = Field(
        default=Backend.VULKAN,
        description=(
            "Backend still compiled in when backend is 'cpu', so a cpu build keeps "
            "portable GPU support. 'none' disables it and turns every accelerator OFF."
        ),
    )
    cmake_generator: str = Field(default="Ninja", description="CMake generator")

    editable_install: bool = Field(default=True, description="Install the package in editable mode")
    python: str = Field(default="python3", description="Interpreter used for install/validate/test/package")
    package_name: str = Field(default="mlc_llm", description="Package imported by the runtime probe")
    cli_command: StrList = Field(
        default=("mlc_llm", "chat"), description="Command probed with a help flag"
    )
    required_libraries: StrList = Field(
        default=("libmlc_llm.so", "libtvm_runtime.so"),
        description="Shared libraries the compile stage must produce",
    )

    test_paths: StrList = Field(default=("tests/python/",), description="Test paths for pytest")
    test_ignores: StrList = Field(
        default=("tests/python/integration/", "tests/python/op/"),
        description="Test paths excluded from the test stage",
    )
    test_marker: str = Field(default="unittest", description="pytest marker expression")

    repair_tool: StrList = Field(default=("auditwheel",), description="Wheel repair tool command")
    exclude_libraries: StrList = Field(
        default=(), description="Extra library prefixes excluded from wheel repair"
    )

    tail_lines: int = Field(
        default=DEFAULT_TAIL_LINES, gt=0, description="Diagnostic output lines kept per stream"
    )

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        frozen=True,
        extra="forbid",
        validate_default=True,
        case_sensitive=False,
        env_file=None,  # Config files are handled by YamlSettingsSource
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Priority order (first source wins): init, env, YAML, defaults."""
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls, project_file=_project_file.get()),
        )

    @field_validator("backend", "cpu_compat_backend", mode="before")
    @classmethod
    def normalize_backend(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            if v in _NONE_VALUES:
                return None
        return v

    @field_validator("cpu_compat_backend")
    @classmethod
    def validate_compat_backend(cls, v: Backend | None) -> Backend | None:
        if v is Backend.CPU:
            raise ValueError("must be an accelerator backend or 'none'")
        return v

    @field_validator("build_type", mode="before")
    @classmethod
    def normalize_build_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            for build_type in BuildType:
                if build_type.value.lower() == v.strip().lower():
                    return build_type
        return v

    @field_validator(*_PATH_FIELDS)
    @classmethod
    def resolve_path(cls, v: Path | None) -> Path | None:
        if v is None:
            return None
        return v.expanduser().resolve()

    @field_validator(
        "cli_command", "required_libraries", "test_paths", "test_ignores",
        "repair_tool", "exclude_libraries",
        mode="before",
    )
    @classmethod
    def split_list(cls, v: Any) -> Any:
        if isinstance(v, str):
            text = v.strip()
            if text.startswith("["):
                return tuple(json.loads(text))
            return tuple(shlex.split(text))
        return v

    @field_validator("repair_tool", "cli_command")
    @classmethod
    def require_program(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("must name a program")
        return v

    @property
    def build_dir(self) -> Path:
        """Effective build directory."""
        return self.build_root if self.build_root is not None else self.source_root / "build"

    @property
    def wheel_dir(self) -> Path:
        """Effective final wheel directory."""
        return self.output_dir if self.output_dir is not None else self.source_root / "wheels"

    def to_display_dict(self) -> dict[str, Any]:
        """Plain values for tables and YAML export (enums as values, paths as strings)."""
        data = self.model_dump(mode="json")
        data["build_root"] = str(self.build_dir)
        data["output_dir"] = str(self.wheel_dir)
        return data
