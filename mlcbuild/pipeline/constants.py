# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from enum import IntEnum

# ============================================================================
# Produced Files
# ============================================================================

SETTINGS_FILE_NAME = "config.cmake"
WHEEL_STAGING_DIR = "wheelhouse"
PYTHON_PACKAGE_DIR = "python"

# ============================================================================
# Validation Probes
# ============================================================================

IMPORT_SUCCESS_MARKER = "MLCBUILD_IMPORT_OK"
HELP_FLAG = "-h"

# ============================================================================
# Diagnostics
# ============================================================================

DEFAULT_TAIL_LINES = 50
# Seconds to wait for a terminated child process tree before killing it
TERMINATE_GRACE_SECONDS = 5.0


# ============================================================================
# Exit Codes
# ============================================================================

class ExitCode(IntEnum):
    """Process exit codes, one per failure category.

    Stage codes are small integers; environment and usage errors follow
    BSD sysexits.h.
    """

    SUCCESS = 0
    ERROR = 1
    CONFIGURE_FAILED = 2
    COMPILE_FAILED = 3
    INSTALL_FAILED = 4
    VALIDATE_FAILED = 5
    TEST_FAILED = 6
    PACKAGE_FAILED = 7
    USAGE = 64
    UNAVAILABLE = 69
    SOFTWARE = 70
    CONFIG = 78
    INTERRUPTED = 130
