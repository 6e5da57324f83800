# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Backend-specific build settings generation.

Turns a BuildConfiguration into the ordered ``set(NAME VALUE)`` entries of the
CMake settings file. Generation is a pure function of the configuration: the
same configuration always renders to the same bytes, so the settings file can
be cached and diffed in CI.

Layout of the generated entries:
1. Baseline: source dependency path, build type, every backend flag OFF
2. Exactly one override block for the selected backend

Later entries win (CMake semantics). For ``backend == cpu`` the override block
enables the configured compatibility backend (``cpu_compat_backend``), or
nothing when that option is ``None``.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import ConfigurationError
from .types import Backend, BuildType

if TYPE_CHECKING:
    from mlcbuild.settings import BuildConfiguration

logger = logging.getLogger(__name__)

# Accelerator flag controlled by each backend
ACCELERATOR_FLAGS = {
    Backend.CUDA: "USE_CUDA",
    Backend.ROCM: "USE_ROCM",
    Backend.VULKAN: "USE_VULKAN",
    Backend.METAL: "USE_METAL",
    Backend.OPENCL: "USE_OPENCL",
}

# Baseline flags in emission order; CUTLASS/CUBLAS are CUDA companion libraries
BASELINE_FLAGS = (
    "USE_CUDA",
    "USE_CUTLASS",
    "USE_CUBLAS",
    "USE_ROCM",
    "USE_VULKAN",
    "USE_METAL",
    "USE_OPENCL",
)

BACKEND_OVERRIDES: dict[Backend, tuple[tuple[str, bool], ...]] = {
    Backend.CPU: (),
    Backend.VULKAN: (("USE_VULKAN", True),),
    Backend.CUDA: (("USE_CUDA", True), ("USE_CUBLAS", True), ("USE_CUTLASS", True)),
    Backend.ROCM: (("USE_ROCM", True),),
    Backend.METAL: (("USE_METAL", True),),
    Backend.OPENCL: (("USE_OPENCL", True),),
}


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, (BuildType, Backend)):
        return value.value
    return str(value)


class GeneratedSettings(Mapping[str, str]):
    """Ordered build settings.

    ``entries`` keeps every emitted ``(name, value)`` pair, including entries
    that a later override replaces; the mapping interface exposes the
    effective (last written) value for each name.

    Example:
        >>> settings = GeneratedSettings([("USE_CUDA", False), ("USE_CUDA", True)])
        >>> settings["USE_CUDA"]
        'ON'
        >>> len(settings.entries)
        2
    """

    def __init__(self, entries: Iterable[tuple[str, Any]]):
        self._entries = tuple((name, _format_value(value)) for name, value in entries)
        effective: dict[str, str] = {}
        for name, value in self._entries:
            effective[name] = value
        self._effective = effective

    @property
    def entries(self) -> tuple[tuple[str, str], ...]:
        return self._entries

    def __getitem__(self, name: str) -> str:
        return self._effective[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._effective)

    def __len__(self) -> int:
        return len(self._effective)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GeneratedSettings):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        return f"GeneratedSettings({list(self._entries)!r})"

    def enabled_accelerators(self) -> list[str]:
        """Accelerator flags whose effective value is ON, in baseline order."""
        return [
            flag for flag in ACCELERATOR_FLAGS.values()
            if self._effective.get(flag) == "ON"
        ]

    def render(self) -> str:
        """Render as a CMake settings file (one ``set()`` per entry)."""
        return "".join(f"set({name} {value})\n" for name, value in self._entries)

    def digest(self) -> str:
        return hashlib.sha256(self.render().encode("utf-8")).hexdigest()

    def write(self, path: Path) -> bool:
        """Write the rendered settings to ``path``.

        The file is left untouched when its content is already identical, so
        incremental CMake runs do not see a spurious modification.

        Returns:
            True if the file was (re)written, False if it was already current
        """
        content = self.render()
        path = Path(path)
        if path.is_file() and path.read_text(encoding="utf-8") == content:
            logger.debug("Settings file %s is up to date", path)
            return False

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.info("Wrote build settings to %s", path)
        return True


def _coerce_backend(value: Any, option: str) -> Backend:
    if isinstance(value, Backend):
        return value
    try:
        return Backend(str(value).lower())
    except ValueError:
        valid = ", ".join(backend.value for backend in Backend)
        raise ConfigurationError(
            f"Unsupported {option} '{value}'",
            details=[f"Valid values: {valid}"],
        ) from None


class ConfigGenerator:
    """Derives GeneratedSettings from a BuildConfiguration.

    Stateless: ``generate`` is a pure function of its input.
    """

    def generate(self, config: BuildConfiguration) -> GeneratedSettings:
        """Generate the settings for ``config``.

        Raises:
            ConfigurationError: If the backend (or the cpu compatibility backend)
                is not a recognized value
        """
        backend = _coerce_backend(config.backend, "backend")
        build_type = config.build_type
        if not isinstance(build_type, BuildType):
            try:
                build_type = BuildType(build_type)
            except ValueError:
                raise ConfigurationError(f"Unsupported build_type '{build_type}'") from None

        entries: list[tuple[str, Any]] = [
            ("TVM_SOURCE_DIR", config.tvm_source_dir),
            ("CMAKE_BUILD_TYPE", build_type),
        ]
        entries.extend((flag, False) for flag in BASELINE_FLAGS)
        entries.extend(self._override_block(backend, config))
        return GeneratedSettings(entries)

    def _override_block(
        self, backend: Backend, config: BuildConfiguration
    ) -> tuple[tuple[str, bool], ...]:
        if backend is not Backend.CPU:
            return BACKEND_OVERRIDES[backend]

        compat = config.cpu_compat_backend
        if compat is None:
            return ()

        compat = _coerce_backend(compat, "cpu_compat_backend")
        if compat is Backend.CPU:
            raise ConfigurationError(
                "cpu_compat_backend cannot be 'cpu'",
                details=["Use an accelerator backend or 'none' to disable the shim"],
            )
        return BACKEND_OVERRIDES[compat]


def generate_settings(config: BuildConfiguration) -> GeneratedSettings:
    """Convenience wrapper around ``ConfigGenerator().generate``."""
    return ConfigGenerator().generate(config)
