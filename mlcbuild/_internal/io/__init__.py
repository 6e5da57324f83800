# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Internal I/O helpers."""
