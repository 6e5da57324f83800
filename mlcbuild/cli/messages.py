# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""User-facing messages and strings for CLI output.

Centralizes all UI text to separate presentation from business logic.
"""

# ============================================================================
# Package Metadata
# ============================================================================

PACKAGE_NAME = "mlcbuild"

# ============================================================================
# Build Messages
# ============================================================================

BUILD_SUCCEEDED = "Build pipeline completed successfully"
BUILD_FAILED = "Build pipeline failed"
BUILD_RERUN_HINT = "Run with --log-level verbose to stream the full tool output"

REPAIR_FALLBACK_HINT = (
    "Unrepaired wheels may depend on libraries missing on the target host. "
    "Install the repair tool (pip install auditwheel, plus patchelf) to bundle them."
)

# ============================================================================
# Configuration Messages
# ============================================================================

CONFIG_EXPORTED = "Configuration exported to {path}"
CONFIG_EXPORT_HINT = "Pass the file back with -c/--config to reproduce this build."
EXPORT_HEADER = "mlcbuild configuration (exported)\nUse with: mlcbuild -c <this file> build"

SETTINGS_WRITTEN = "Wrote build settings to {path}"
SETTINGS_UNCHANGED = "Build settings unchanged: {path}"

# ============================================================================
# Error Detail Messages
# ============================================================================

UNEXPECTED_ERROR_HINT = "Run with --log-level debug for a full traceback"
