"""Helpers shared by the commands: config loading and logging setup."""

from pathlib import Path

import typer

from taskloom.cli.formatters.panels import print_error
from taskloom.config.loader import load_config, load_config_or_default
from taskloom.config.models import TaskloomConfig
from taskloom.core.errors import ConfigError
from taskloom.observability.logging import (
    LoggingConfig,
    LogMode,
    configure_logging,
    set_console_logging,
)


def load_cli_config(config_file: Path | None) -> TaskloomConfig:
    """Load ``config_file`` (or ~/.taskloom/config.yaml, else defaults).

    Raises:
        typer.Exit: With code 1 when the file is missing or invalid.
    """
    try:
        if config_file is not None:
            return load_config(config_file)
        return load_config_or_default()
    except ConfigError as e:
        print_error(e.message, title="Configuration Error")
        raise typer.Exit(1) from e


def setup_logging(config: TaskloomConfig, *, verbose: bool) -> None:
    """Apply the logging section; stderr logs only with --verbose."""
    configure_logging(
        LoggingConfig(
            mode=LogMode(config.logging.mode),
            log_level="DEBUG" if verbose else config.logging.level.upper(),
            enable_file_logging=config.logging.enable_file_logging,
            max_log_days=config.logging.max_log_days,
        )
    )
    set_console_logging(verbose)
