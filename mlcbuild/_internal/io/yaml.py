# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""YAML helpers for project configuration files.

- load_mapping(): read a file that must hold a top-level mapping
- expand_env_vars(): expand ${VAR} references in every string value
- dump_yaml(): write a mapping in block style, optionally behind a comment header
"""

import os
from pathlib import Path
from typing import Any

import yaml


class NotAMappingError(ValueError):
    """The YAML document is valid but its top level is not a mapping."""

    def __init__(self, path: Path, found: Any):
        self.path = path
        self.found_type = type(found).__name__
        super().__init__(f"{path} must contain a mapping, got {self.found_type}")


def load_mapping(file_path: str | Path) -> dict[str, Any]:
    """Load a YAML mapping. An empty file is an empty mapping.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the YAML is invalid
        NotAMappingError: If the document is a list or scalar
    """
    file_path = Path(file_path)
    with open(file_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise NotAMappingError(file_path, data)
    return data


def expand_env_vars(data: Any) -> Any:
    """Expand $VAR / ${VAR} in strings, recursing into lists and mappings.

    Undefined variables are left as written. os.environ is never modified.
    """
    if isinstance(data, str):
        return os.path.expandvars(data)
    if isinstance(data, dict):
        return {key: expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [expand_env_vars(item) for item in data]
    return data


def dump_yaml(data: dict[str, Any], file_path: str | Path, header: str | None = None) -> None:
    """Write ``data`` in block style, keeping key order.

    Args:
        data: Mapping to write
        file_path: Output file; parent directories are created
        header: Optional text written above the document as ``#`` comments
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    body = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    if header:
        comments = "".join(f"# {line}".rstrip() + "\n" for line in header.splitlines())
        body = comments + body

    file_path.write_text(body, encoding="utf-8")
