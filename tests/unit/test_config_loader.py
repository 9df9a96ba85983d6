from __future__ import annotations

from pathlib import Path

import pytest

from sheetpipe.config.loader import (
    ENV_CONFIG_PATH,
    ConfigError,
    PipelineConfig,
    load_config,
    resolve_config_path,
)


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.batch_rows == 2
    assert cfg.render.timestamp_format == "iso"
    assert cfg.render.include_header is True
    assert cfg.has_header_row is True
    assert cfg.dirents.size_type == "int64"


def test_no_path_gives_defaults():
    cfg = load_config(None)
    assert cfg == PipelineConfig()
    assert cfg.batch_rows == 1024
    assert cfg.render.timestamp_format == "number"
    assert cfg.render.lossy is False


def test_empty_file_gives_defaults(temp_workdir: Path):
    path = temp_workdir / "config" / "empty.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == PipelineConfig()


def test_partial_sections_fill_defaults(temp_workdir: Path):
    path = temp_workdir / "config" / "partial.yml"
    path.write_text("render:\n  lossy: true\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.render.lossy is True
    assert cfg.render.include_header is True
    assert cfg.dirents.modified_type == "timestamp_ms"


def test_load_config_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "config" / "not_exists.yml")


def test_invalid_yaml(temp_workdir: Path):
    path = temp_workdir / "config" / "bad.yml"
    path.write_text("render: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="invalid yaml"):
        load_config(path)


@pytest.mark.parametrize(
    "text",
    [
        "extra_field: 1\n",
        "batch_rows: 0\n",
        "batch_rows: ten\n",
        "render:\n  timestamp_format: excel\n",
        "dirents:\n  size_type: uint64\n",
        "extract:\n  has_header_row: maybe\n",
        "- a list\n",
    ],
)
def test_schema_violations(temp_workdir: Path, text: str):
    path = temp_workdir / "config" / "bad.yml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(path)
    assert "config validation failed" in str(e.value)


def test_resolve_config_path_precedence(monkeypatch):
    monkeypatch.setenv(ENV_CONFIG_PATH, "/from/env.yml")
    assert resolve_config_path("cli.yml") == Path("cli.yml")
    assert resolve_config_path(None) == Path("/from/env.yml")
    monkeypatch.delenv(ENV_CONFIG_PATH)
    assert resolve_config_path(None) is None
