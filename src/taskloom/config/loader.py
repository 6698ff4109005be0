"""Configuration loading and management for Taskloom.

Functions:
    load_config: Load configuration from ~/.taskloom/config.yaml
    create_default_config: Write the default config.yaml
    ensure_config_dir: Ensure ~/.taskloom/ exists
    config_exists: Check whether config.yaml exists
"""

from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import ValidationError as PydanticValidationError
import yaml

from taskloom.config.models import TaskloomConfig, get_config_dir, get_default_config
from taskloom.core.errors import ConfigError

# Provider API keys come from .env in the working directory or ~/.taskloom/
load_dotenv()
load_dotenv(Path.home() / ".taskloom" / ".env")


def ensure_config_dir() -> Path:
    """Create ~/.taskloom/ and its logs/ subdirectory if missing."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "logs").mkdir(exist_ok=True)
    return config_dir


def _format_validation_errors(error: PydanticValidationError) -> str:
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"])
        lines.append(f"  - {loc}: {item['msg']}")
    return "\n".join(lines)


def _to_yaml_dict(config: TaskloomConfig) -> dict[str, Any]:
    return config.model_dump(mode="json")


def create_default_config(
    config_dir: Path | None = None,
    *,
    overwrite: bool = False,
) -> Path:
    """Write a default config.yaml.

    Args:
        config_dir: Directory to create the file in. Defaults to ~/.taskloom/
        overwrite: Replace an existing file instead of failing.

    Returns:
        Path of the written config.yaml.

    Raises:
        ConfigError: If the file exists and overwrite is False.
    """
    if config_dir is None:
        config_dir = ensure_config_dir()
    else:
        config_dir.mkdir(parents=True, exist_ok=True)

    config_path = config_dir / "config.yaml"
    if config_path.exists() and not overwrite:
        raise ConfigError(
            f"Configuration file already exists: {config_path}",
            config_file=str(config_path),
        )

    with config_path.open("w") as f:
        yaml.dump(
            _to_yaml_dict(get_default_config()),
            f,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
        )
    return config_path


def load_config(config_path: Path | None = None) -> TaskloomConfig:
    """Load and validate configuration from YAML.

    Args:
        config_path: Path to config file. Defaults to ~/.taskloom/config.yaml.

    Returns:
        Validated TaskloomConfig instance.

    Raises:
        ConfigError: If the file doesn't exist, is malformed, or fails validation.
    """
    if config_path is None:
        config_path = get_config_dir() / "config.yaml"

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}. "
            "Run `taskloom config init` to create default configuration.",
            config_file=str(config_path),
        )

    try:
        with config_path.open() as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse configuration file: {e}",
            config_file=str(config_path),
            details={"yaml_error": str(e)},
        ) from e

    if config_dict is None:
        config_dict = {}
    if not isinstance(config_dict, dict):
        raise ConfigError(
            "Configuration file must contain a mapping at the top level",
            config_file=str(config_path),
        )

    try:
        return TaskloomConfig.model_validate(config_dict)
    except PydanticValidationError as e:
        raise ConfigError(
            "Configuration validation failed:\n" + _format_validation_errors(e),
            config_file=str(config_path),
            details={"validation_errors": e.errors()},
        ) from e


def load_config_or_default(config_path: Path | None = None) -> TaskloomConfig:
    """Load configuration, falling back to defaults when no file exists.

    A file that exists but is invalid still raises ConfigError.
    """
    path = config_path or get_config_dir() / "config.yaml"
    if not path.exists():
        return get_default_config()
    return load_config(path)


def config_exists() -> bool:
    """Return True if ~/.taskloom/config.yaml exists."""
    return (get_config_dir() / "config.yaml").exists()
