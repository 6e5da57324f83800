# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from __future__ import annotations  # PEP 563: Postponed evaluation of annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .constants import LOG_LEVELS

# Type hints only - settings imported lazily inside methods
if TYPE_CHECKING:
    from mlcbuild.settings import BuildConfiguration

logger = logging.getLogger(__name__)


@dataclass
class ApplicationContext:
    """CLI execution context with BuildConfiguration loading and CLI argument handling."""

    # Core settings
    no_progress: bool = False
    log_level: str = "normal"
    config_file: Path | None = None
    overrides: dict[str, Any] = field(default_factory=dict)

    # Loaded configuration
    config: "BuildConfiguration | None" = None

    @classmethod
    def from_cli_args(
        cls,
        config_file: Path | None,
        log_level: str,
        no_progress: bool,
    ) -> "ApplicationContext":
        """Create context from the group-level CLI arguments and set up logging.

        Configuration is loaded on first use, once the subcommand has added
        its own overrides.
        """
        from mlcbuild._internal.logging import setup_logging
        from .utils import console

        setup_logging(level=LOG_LEVELS.get(log_level, "warning"), console=console)
        logger.debug(f"CLI initialized with log_level={log_level}, no_progress={no_progress}")

        return cls(config_file=config_file, log_level=log_level, no_progress=no_progress)

    @property
    def streams_output(self) -> bool:
        """True when child tool output reaches the console through logging."""
        return self.log_level in ("verbose", "debug")

    def apply_overrides(self, **overrides: Any) -> None:
        """Record subcommand overrides; None means "not given"."""
        for key, value in overrides.items():
            if value is not None:
                self.overrides[key] = value
        self.config = None

    def load_configuration(self) -> None:
        from mlcbuild.settings import load_config

        # Pydantic handles validation and priority (CLI overrides > env > file > defaults)
        self.config = load_config(
            project_file=self.config_file,
            **self.overrides
        )

    def get_effective_config(self) -> "BuildConfiguration":
        if not self.config:
            self.load_configuration()
        return self.config
