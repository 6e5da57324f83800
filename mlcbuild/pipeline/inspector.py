# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Post-stage artifact verification.

Only existence is checked; artifact contents are never parsed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from .errors import MissingArtifactError
from .types import Artifact, ArtifactKind, StageName

logger = logging.getLogger(__name__)

WHEEL_SUFFIX = ".whl"


def find_wheels(directory: Path) -> list[Artifact]:
    """Wheel artifacts directly inside ``directory``, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return [
        Artifact(path, ArtifactKind.WHEEL_PACKAGE)
        for path in sorted(directory.glob(f"*{WHEEL_SUFFIX}"))
        if path.is_file()
    ]


class ArtifactInspector:
    """Checks that stages left their expected outputs on disk."""

    def exists(self, artifact: Artifact) -> bool:
        path = artifact.path
        if artifact.kind is ArtifactKind.WHEEL_PACKAGE and path.is_dir():
            return bool(find_wheels(path))
        if artifact.kind is ArtifactKind.WHEEL_PACKAGE:
            return path.is_file() and path.suffix == WHEEL_SUFFIX
        return path.is_file()

    def verify(self, expected: Iterable[Artifact], stage_name: StageName) -> list[Artifact]:
        """Verify every expected artifact exists.

        Wheel-kind artifacts naming a directory expand to the wheels found in it.

        Returns:
            The concrete artifacts found, sorted by path

        Raises:
            MissingArtifactError: If any expected artifact is absent
        """
        expected = sorted(expected, key=lambda artifact: str(artifact.path))
        missing = [artifact for artifact in expected if not self.exists(artifact)]
        if missing:
            for artifact in missing:
                logger.error("Missing %s: %s", artifact.kind.value, artifact.path)
            raise MissingArtifactError(
                stage_name,
                missing,
                details=[f"Expected {a.kind.value} at {a.path}" for a in missing],
            )

        found: list[Artifact] = []
        for artifact in expected:
            if artifact.kind is ArtifactKind.WHEEL_PACKAGE and artifact.path.is_dir():
                found.extend(find_wheels(artifact.path))
            else:
                found.append(artifact)

        for artifact in found:
            logger.info("Found %s: %s", artifact.kind.value, artifact.path)
        return found
