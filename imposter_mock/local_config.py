from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .errors import InitializationError

# Checked in order; the first file present wins.
LOCAL_CONFIG_NAMES = (".imposterrc", ".imposterrc.yaml", ".imposterrc.yml", ".imposterrc.json")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise InitializationError(f"Unable to read project configuration {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InitializationError(f"Project configuration {path} must be a mapping")
    return data


def discover_local_config(directory: Path | None = None) -> Path | None:
    """
    Find the project-level CLI configuration file, if any.

    The file itself is interpreted by the engine CLI (passed via --config);
    it is only parsed here so that a malformed file fails before spawn.
    JSON files are valid YAML, so one parser covers all variants.
    """
    if directory is None:
        directory = Path.cwd()

    for name in LOCAL_CONFIG_NAMES:
        candidate = directory / name
        if candidate.is_file():
            _read_yaml(candidate)
            return candidate.resolve()
    return None
