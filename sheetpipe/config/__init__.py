"""Configuration loading for the sheetpipe tools."""

from .loader import ConfigError, PipelineConfig, load_config, resolve_config_path

__all__ = [
    "ConfigError",
    "PipelineConfig",
    "load_config",
    "resolve_config_path",
]
