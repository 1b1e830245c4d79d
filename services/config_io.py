"""Config file I/O for the bridge: JSON, YAML and TOML.

The format is picked from the file extension:
  .json        → JSON
  .yaml / .yml → YAML  (PyYAML)
  .toml        → TOML  (read: stdlib tomllib; write: tomli-w)

``load_app_config`` goes one step further and validates the raw mapping
into the frozen :class:`~services.config_schema.AppConfig`.
"""
from __future__ import annotations

import json
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
import yaml
from pydantic import ValidationError

from services.config_schema import AppConfig
from services.error import ConfigError

_YAML_EXTS = {".yaml", ".yml"}
_TOML_EXTS = {".toml"}

_CONFIG_NAMES = ["config.json", "config.yaml", "config.yml", "config.toml"]


def find_config(directory: Path) -> Path | None:
    """Return the first existing config file found in *directory*."""
    for name in _CONFIG_NAMES:
        p = directory / name
        if p.is_file():
            return p
    return None


def load_config(path: Path) -> dict[str, Any]:
    """Load a config file into a plain dict."""
    ext = path.suffix.lower()
    try:
        if ext in _YAML_EXTS:
            with open(path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        if ext in _TOML_EXTS:
            with open(path, "rb") as f:
                return tomllib.load(f)
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e


def save_config(data: dict[str, Any], path: Path) -> None:
    """Save *data* to *path*; format is inferred from the file extension."""
    path.parent.mkdir(parents=True, exist_ok=True)
    ext = path.suffix.lower()
    if ext in _YAML_EXTS:
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, allow_unicode=True, sort_keys=False, default_flow_style=False)
        return
    if ext in _TOML_EXTS:
        with open(path, "wb") as f:
            tomli_w.dump(data, f)
        return
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


def load_app_config(path: Path) -> AppConfig:
    """Load and validate *path*; validation errors become ConfigError."""
    raw = load_config(path)
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config in {path}:\n{e}") from e
