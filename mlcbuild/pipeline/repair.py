# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Best-effort binary repair of packaged wheels.

Repair bundles the wheel's external native dependencies for portability,
except libraries matching the exclusion list (assumed present on the target
host, e.g. GPU driver libraries).

Repair is an enhancement, not a requirement: when the host platform does not
support it, the repair tool is missing, or the tool fails, the unrepaired
wheel is copied into the output directory and a RepairWarning is recorded.
"""

from __future__ import annotations

import logging
import platform as _platform
import shutil
import subprocess
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from packaging import tags

from .errors import MissingArtifactError, RepairWarning
from .types import Artifact, ArtifactKind, Backend, StageName

logger = logging.getLogger(__name__)

# Libraries provided by the host graphics/compute driver regardless of backend
BASE_EXCLUSIONS = (
    "libvulkan.so",
    "libOpenCL.so",
)

BACKEND_EXCLUSIONS: dict[Backend, tuple[str, ...]] = {
    Backend.CUDA: (
        "libcuda.so",
        "libcudart.so",
        "libcublas.so",
        "libcublasLt.so",
        "libnvrtc.so",
    ),
    Backend.ROCM: (
        "libamdhip64.so",
        "libhsa-runtime64.so",
        "librocblas.so",
        "libhipblas.so",
    ),
}


@dataclass(frozen=True)
class ExclusionList:
    """Library-name prefixes left out of a repaired wheel.

    Attributes:
        base: Backend-independent prefixes
        backend_specific: Prefixes added for the selected backend (and by the user)
    """

    base: frozenset[str]
    backend_specific: frozenset[str] = frozenset()

    @classmethod
    def for_backend(cls, backend: Backend, extra: Iterable[str] = ()) -> ExclusionList:
        additions = set(BACKEND_EXCLUSIONS.get(backend, ()))
        additions.update(extra)
        return cls(base=frozenset(BASE_EXCLUSIONS), backend_specific=frozenset(additions))

    @property
    def prefixes(self) -> tuple[str, ...]:
        """All prefixes, sorted for a stable command line."""
        return tuple(sorted(self.base | self.backend_specific))

    def __iter__(self) -> Iterator[str]:
        return iter(self.prefixes)

    def __len__(self) -> int:
        return len(self.prefixes)

    def matches(self, library_name: str) -> bool:
        return any(library_name.startswith(prefix) for prefix in self.prefixes)

    def to_arguments(self) -> list[str]:
        """Repair tool arguments, one ``--exclude <prefix>*`` pair per prefix."""
        arguments: list[str] = []
        for prefix in self.prefixes:
            arguments.extend(["--exclude", f"{prefix}*"])
        return arguments


@dataclass(frozen=True)
class PlatformTag:
    """Host platform as seen by the repair tool.

    Attributes:
        system: Lower-case operating system name ("linux", "darwin", "windows")
        tag: Most specific wheel platform tag of the running interpreter
    """

    system: str
    tag: str

    @classmethod
    def host(cls) -> PlatformTag:
        system = _platform.system().lower()
        tag = next(iter(tags.platform_tags()), f"{system}_{_platform.machine().lower()}")
        return cls(system=system, tag=tag)

    @property
    def supports_repair(self) -> bool:
        return self.system == "linux"


class PackageRepairer:
    """Repairs wheels into ``output_dir`` with a fallback to plain copies.

    Args:
        output_dir: Final wheel location
        tool: Repair tool command (program plus leading arguments)
    """

    def __init__(self, output_dir: Path, tool: Sequence[str] = ("auditwheel",)):
        self.output_dir = Path(output_dir)
        self.tool = tuple(tool)
        self.warnings: list[RepairWarning] = []

    def repair(
        self,
        wheel: Artifact,
        exclusions: ExclusionList,
        platform: PlatformTag,
    ) -> Artifact:
        """Repair ``wheel`` into the output directory.

        Returns:
            The repaired wheel, or the copied original when repair was not possible

        Raises:
            MissingArtifactError: If not even the fallback copy could be placed
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)

        if not platform.supports_repair:
            return self._fallback(wheel, f"binary repair is not supported on {platform.system}")

        if shutil.which(self.tool[0]) is None:
            return self._fallback(wheel, f"repair tool '{self.tool[0]}' not found")

        # No --plat: the tool picks the best manylinux policy the wheel satisfies
        cmd = [
            *self.tool, "repair",
            *exclusions.to_arguments(),
            "-w", str(self.output_dir),
            str(wheel.path),
        ]
        logger.info("Repairing %s on %s: %s", wheel.name, platform.tag, " ".join(cmd))

        before = self._snapshot()
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, stdin=subprocess.DEVNULL)
        except OSError as e:
            return self._fallback(wheel, f"could not run repair tool: {e}")

        if result.stdout:
            for line in result.stdout.splitlines():
                if line.strip():
                    logger.info(line)

        if result.returncode != 0:
            reason = f"repair tool exited with code {result.returncode}"
            stderr_lines = [line for line in result.stderr.splitlines() if line.strip()]
            if stderr_lines:
                reason = f"{reason}: {stderr_lines[-1]}"
            return self._fallback(wheel, reason)

        produced = [path for path, mtime in self._snapshot().items() if before.get(path) != mtime]
        if not produced:
            return self._fallback(wheel, "repair tool succeeded but wrote no wheel")

        repaired = Artifact(sorted(produced)[-1], ArtifactKind.WHEEL_PACKAGE)
        logger.info("Repaired %s -> %s", wheel.name, repaired.name)
        return repaired

    def _snapshot(self) -> dict[Path, int]:
        return {path: path.stat().st_mtime_ns for path in self.output_dir.glob("*.whl")}

    def _fallback(self, wheel: Artifact, reason: str) -> Artifact:
        warning = RepairWarning(f"{wheel.name}: {reason}; using unrepaired wheel", wheel=wheel)
        self.warnings.append(warning)
        logger.warning(warning.message)

        dest = self.output_dir / wheel.name
        try:
            if wheel.path.resolve() != dest.resolve():
                shutil.copy2(wheel.path, dest)
        except OSError as e:
            raise MissingArtifactError(
                StageName.PACKAGE,
                [Artifact(dest, ArtifactKind.WHEEL_PACKAGE)],
                details=[f"Could not copy {wheel.path}: {e}"],
            ) from e

        return Artifact(dest, ArtifactKind.WHEEL_PACKAGE)
