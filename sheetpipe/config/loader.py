from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..excel.writer import RenderOptions
from ..sources.dirents import DirentOptions

"""Config loader.

Responsibilities:
- Load an optional YAML config file
- Validate it against the packaged config_schema.json
- Apply defaults for every missing key

Precedence (highest first): command-line flags, the file named by --config,
the file named by SHEETPIPE_CONFIG, built-in defaults.
"""

__all__ = [
    "ConfigError",
    "PipelineConfig",
    "ENV_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "resolve_config_path",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
ENV_CONFIG_PATH = "SHEETPIPE_CONFIG"
DEFAULT_BATCH_ROWS = 1024


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class PipelineConfig:
    batch_rows: int = DEFAULT_BATCH_ROWS
    render: RenderOptions = field(default_factory=RenderOptions)
    has_header_row: bool = True
    dirents: DirentOptions = field(default_factory=DirentOptions)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the packaged JSON schema.

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails validation (unknown keys, wrong types, bad enums).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def resolve_config_path(cli_value: str | None) -> Path | None:
    """Pick the config file: explicit flag first, then SHEETPIPE_CONFIG."""
    if cli_value:
        return Path(cli_value)
    env_value = os.getenv(ENV_CONFIG_PATH)
    if env_value:
        return Path(env_value)
    return None


def load_config(path: Path | None = None) -> PipelineConfig:
    if path is None:
        return PipelineConfig()
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config validation failed: top level must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    render_raw = data.get("render", {})
    extract_raw = data.get("extract", {})
    dirents_raw = data.get("dirents", {})
    return PipelineConfig(
        batch_rows=data.get("batch_rows", DEFAULT_BATCH_ROWS),
        render=RenderOptions(
            include_header=render_raw.get("include_header", True),
            timestamp_format=render_raw.get("timestamp_format", "number"),
            lossy=render_raw.get("lossy", False),
        ),
        has_header_row=extract_raw.get("has_header_row", True),
        dirents=DirentOptions(
            size_type=dirents_raw.get("size_type", "int64"),
            modified_type=dirents_raw.get("modified_type", "timestamp_ms"),
            include_hidden=dirents_raw.get("include_hidden", False),
        ),
    )
