# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from mlcbuild.pipeline.constants import ExitCode

# ============================================================================
# CLI Names
# ============================================================================

CLI_NAME = "mlcbuild"

# ============================================================================
# Log Verbosity
# ============================================================================

# CLI verbosity name -> logging level name
LOG_LEVELS = {
    "quiet": "error",
    "normal": "warning",
    "verbose": "info",
    "debug": "debug",
}

DEFAULT_LOG_LEVEL = "normal"

# ============================================================================
# Output Limits
# ============================================================================

# Diagnostic lines printed for a failed stage
FAILURE_TAIL_LINES = 20

__all__ = [
    "CLI_NAME",
    "DEFAULT_LOG_LEVEL",
    "ExitCode",
    "FAILURE_TAIL_LINES",
    "LOG_LEVELS",
]
