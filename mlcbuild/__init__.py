# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""mlcbuild - declarative build orchestration for native libraries and their Python packages."""

__version__ = "0.1.0"
