# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Internal utilities for mlcbuild.

This module is not part of the public API and may change without notice.
"""
