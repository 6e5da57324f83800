# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""mlcbuild configuration module.

Provides immutable, type-safe build configuration with Pydantic Settings.
"""

from .loader import load_config
from .schema import BuildConfiguration, find_project_config

__all__ = [
    "BuildConfiguration",
    "load_config",
    "find_project_config",
]
