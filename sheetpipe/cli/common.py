from __future__ import annotations

import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, PipelineConfig, load_config, resolve_config_path
from ..excel.reader import DuplicateFieldNameError, RowShapeError, SheetNotFoundError
from ..excel.writer import PrecisionLossError
from ..logging.init import log_summary, set_debug, setup_logging
from ..models.schema import SchemaError
from ..models.stage_result import StageResult
from ..services.summary import render_summary_line
from ..sources.dirents import SourceError
from ..stream.codec import StreamError

"""Shared CLI glue: exit codes, .env/config loading and error reporting."""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_USAGE = 2

# Every error kind a stage can abort with. SchemaMismatchError is a SchemaError
# and UnsupportedVersionError / TruncatedStreamError are StreamErrors.
FATAL_ERRORS: tuple[type[Exception], ...] = (
    ConfigError,
    SchemaError,
    StreamError,
    PrecisionLossError,
    DuplicateFieldNameError,
    RowShapeError,
    SheetNotFoundError,
    SourceError,
    ValueError,
    OSError,
)


def add_common_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", help="YAML config file (default: $SHEETPIPE_CONFIG)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")


def _load_env_file(path: Path) -> None:
    """Load .env with python-dotenv without overriding the real environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=False)


def start(args: argparse.Namespace) -> logging.Logger:
    logger = setup_logging()
    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")
    return logger


def load_stage_config(args: argparse.Namespace) -> PipelineConfig:
    """Resolve and load the config file; raises ConfigError."""
    _load_env_file(Path(".env"))
    path = resolve_config_path(args.config)
    if path is not None:
        logging.getLogger(__name__).debug("config: %s", path)
    return load_config(path)


def report_failure(logger: logging.Logger, stage: str, error: Exception) -> int:
    logger.error(f"{stage}: {type(error).__name__}: {error}")
    return EXIT_FATAL


def report_success(result: StageResult) -> int:
    # log_summary adds the "SUMMARY " prefix itself
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    return EXIT_SUCCESS
