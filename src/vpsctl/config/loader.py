"""YAML config loader with environment variable interpolation."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from vpsctl.config.models import ToolkitConfig

CONFIG_FILENAME = ".vpsctl.yaml"
SYSTEM_CONFIG = Path("/etc/vpsctl/vpsctl.yaml")

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

logger = logging.getLogger(__name__)


def _interpolate_env(value: str) -> str:
    """Replace ${VAR} and ${VAR:-default} patterns with environment values."""

    def _replace(match: re.Match[str]) -> str:
        expr = match.group(1)
        if ":-" in expr:
            var_name, default = expr.split(":-", 1)
            return os.environ.get(var_name.strip(), default)
        return os.environ.get(expr.strip(), match.group(0))

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(data: Any) -> Any:
    """Walk a nested data structure and interpolate env vars in strings."""
    if isinstance(data, str):
        return _interpolate_env(data)
    if isinstance(data, dict):
        return {k: _interpolate_recursive(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_interpolate_recursive(item) for item in data]
    return data


def find_config_file(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default cwd) looking for .vpsctl.yaml, then try the system path."""
    current = (start or Path.cwd()).resolve()
    for ancestor in [current, *current.parents]:
        candidate = ancestor / CONFIG_FILENAME
        if candidate.exists():
            return candidate
    if SYSTEM_CONFIG.exists():
        return SYSTEM_CONFIG
    return None


def load_config(path: Path | None = None) -> ToolkitConfig:
    """Load and validate the toolkit config, applying env-var interpolation.

    An explicit *path* must exist. Without one, the first file found by
    :func:`find_config_file` is used, and the built-in defaults apply when
    there is none.
    """
    if path is not None and not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    config_path = path or find_config_file()
    if config_path is None:
        logger.debug("No %s found, using defaults", CONFIG_FILENAME)
        return ToolkitConfig()
    with config_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    data = _interpolate_recursive(raw)
    try:
        return ToolkitConfig(**data)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration in {config_path}: {exc}") from exc
