# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""mlcbuild command-line interface.

Commands: build, plan, settings, config
Usage: mlcbuild --log-level verbose build --backend cuda --wheel

Architecture:
- Group and error handling in cli.py (create_cli() factory, LazyGroup)
- Configuration managed through ApplicationContext (context.py)
- Commands receive the context through the shared build override options

Entry point defined in setup.py.
"""

from .cli import create_cli, main

__all__ = [
    "create_cli",
    "main",
]
