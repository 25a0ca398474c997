"""Configuration loader with hot-reload support.

Loads config.yaml, validates it against the Pydantic schema and caches the
result. The path defaults to ``config/config.yaml`` and can be overridden
with the ``SWIPE_CONFIG_PATH`` environment variable.

Usage:
    from swipe.config import get_config, reload_config_if_changed

    config = get_config()

    # Between sessions, pick up edits without a restart
    if reload_config_if_changed():
        config = get_config()
"""

import os
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from swipe.config_schema import CURRENT_SCHEMA_VERSION, AppConfig
from swipe.core.errors import ConfigLoadError, ConfigValidationError
from swipe.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path("config/config.yaml")

_config_lock = threading.Lock()
_current_config: AppConfig | None = None
_config_path: Path | None = None
_config_mtime: float = 0.0


def get_config_path() -> Path:
    """Get the config file path from environment or default."""
    env_path = os.environ.get("SWIPE_CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def _format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic validation errors into one actionable line per field."""
    messages = []
    for err in error.errors():
        field_path = ".".join(str(loc) for loc in err["loc"]) or "(root)"
        err_type = err["type"]

        if err_type == "missing":
            messages.append(f"  - Missing required field '{field_path}'")
        elif err_type in ("int_type", "int_parsing"):
            messages.append(f"  - Field '{field_path}' must be an integer")
        elif err_type in ("float_type", "float_parsing"):
            messages.append(f"  - Field '{field_path}' must be a number")
        elif err_type == "extra_forbidden":
            messages.append(f"  - Unknown field '{field_path}'")
        else:
            messages.append(f"  - Field '{field_path}': {err['msg']}")

    return "\n".join(messages)


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML mapping.

    Raises:
        ConfigLoadError: If the file is missing, unparsable, or not a mapping
    """
    if not path.exists():
        raise ConfigLoadError(
            f"Configuration file not found: {path}\n"
            f"Create it (an empty file uses all defaults) or set SWIPE_CONFIG_PATH."
        )

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse YAML in {path}:\n{e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"Configuration file must be a YAML mapping, got {type(data).__name__}"
        )
    return data


def _validate_config(data: dict[str, Any], path: Path) -> AppConfig:
    """Validate parsed YAML against the schema.

    Raises:
        ConfigValidationError: If validation fails or the schema version is too new
    """
    try:
        config = AppConfig(**data)
    except ValidationError as e:
        raise ConfigValidationError(
            f"Configuration validation failed for {path}:\n{_format_validation_errors(e)}"
        ) from e

    if config.schema_version > CURRENT_SCHEMA_VERSION:
        raise ConfigValidationError(
            f"Config schema version {config.schema_version} is newer than "
            f"supported version {CURRENT_SCHEMA_VERSION}. "
            "Upgrade swipe or downgrade the config."
        )
    return config


def load_config(path: Path | None = None) -> AppConfig:
    """Load and validate configuration from disk (always fresh, never cached).

    Args:
        path: Config file path; defaults to SWIPE_CONFIG_PATH or config/config.yaml

    Raises:
        ConfigLoadError: If file cannot be loaded
        ConfigValidationError: If validation fails
    """
    config_path = path or get_config_path()

    logger.debug("config_loading", path=str(config_path))

    config = _validate_config(_load_yaml(config_path), config_path)

    logger.info(
        "config_loaded",
        path=str(config_path),
        schema_version=config.schema_version,
        window_size=config.buffer.window_size,
        undo_window_seconds=config.actions.undo_window_seconds,
    )
    return config


def get_config() -> AppConfig:
    """Get the cached configuration, loading it on first use.

    Thread-safe: protected by _config_lock.

    Raises:
        ConfigLoadError: If file cannot be loaded
        ConfigValidationError: If validation fails
    """
    global _current_config, _config_path, _config_mtime

    with _config_lock:
        if _current_config is None:
            _config_path = get_config_path()
            _current_config = load_config(_config_path)
            _config_mtime = _config_path.stat().st_mtime

        return _current_config


def reload_config_if_changed() -> bool:
    """Reload the cached configuration if the file changed on disk.

    An invalid edit keeps the previous configuration and logs a warning.

    Returns:
        True if config was reloaded, False if unchanged or the reload failed
    """
    global _current_config, _config_mtime

    with _config_lock:
        if _config_path is None:
            return False

        try:
            current_mtime = _config_path.stat().st_mtime
        except OSError as e:
            logger.warning("config_mtime_check_failed", path=str(_config_path), error=str(e))
            return False

        if current_mtime <= _config_mtime:
            return False

        logger.info("config_changed_reloading", path=str(_config_path))

        try:
            _current_config = load_config(_config_path)
        except (ConfigLoadError, ConfigValidationError) as e:
            logger.warning(
                "config_reload_failed_keeping_previous",
                path=str(_config_path),
                error=str(e),
            )
            return False
        finally:
            # Never retry the same broken file on every check
            _config_mtime = current_mtime

        return True


def validate_config_file(path: Path | None = None) -> tuple[bool, str]:
    """Validate a config file without touching the cached singleton.

    Returns:
        Tuple of (is_valid, message)
    """
    config_path = path or get_config_path()

    try:
        config = load_config(config_path)
    except ConfigLoadError as e:
        return (False, f"Load error: {e}")
    except ConfigValidationError as e:
        return (False, f"Validation error: {e}")

    safety = config.safety
    return (
        True,
        f"Configuration valid (schema version {config.schema_version})\n"
        f"  - window {config.buffer.window_size}, refill at <= {config.buffer.trigger_threshold}\n"
        f"  - undo window {config.actions.undo_window_seconds:g}s\n"
        f"  - {len(safety.extra_never_domains)} extra protected domains\n"
        f"  - {len(safety.extra_caution_domains)} extra caution domains\n"
        f"  - {len(safety.extra_free_domains)} extra free domains",
    )


def reset_config() -> None:
    """Reset the config singleton. Primarily for testing."""
    global _current_config, _config_path, _config_mtime
    with _config_lock:
        _current_config = None
        _config_path = None
        _config_mtime = 0.0
