"""Provides functions for loading and accessing configuration settings.

Supports loading from a YAML configuration file, a .env file and environment
variables. Keys are dotted paths into the YAML document (``cache.root``,
``circuit_breaker.threshold``); the matching environment override is
``TRIAGECLI_<SECTION>__<KEY>`` (``TRIAGECLI_CACHE__ROOT``).
"""

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from triagecli.domain.errors import ConfigError
from triagecli.infrastructure.cache.file_cache import APP_DIR_NAME, MODELS_SUBDIR, TRIAGE_SUBDIR, cache_dir

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
ENV_FILE_NAME = ".env"
ENV_PREFIX = "TRIAGECLI_"

SUPPORTED_PROVIDERS = ("openai", "openrouter", "groq")
DEFAULT_PROVIDER = "openrouter"
API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "groq": "GROQ_API_KEY",
}

DEFAULT_CIRCUIT_BREAKER_THRESHOLD = 3
DEFAULT_CIRCUIT_BREAKER_RESET_SECONDS = 60
DEFAULT_MODELS_TTL_HOURS = 24
DEFAULT_TRIAGE_TTL_MINUTES = 60

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False


def default_config_file() -> Path:
    """``$XDG_CONFIG_HOME/triagecli/config.yaml`` or ``~/.config/triagecli/config.yaml``."""
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg_config) if xdg_config else Path.home() / ".config"
    return base / APP_DIR_NAME / "config.yaml"


def load_configuration(
    config_file: Optional[Path] = None,
    env_file: Optional[Path] = None,
    force: bool = False,
) -> None:
    """Loads configuration from the YAML file and the .env file.

    Priority order (highest to lowest):
    1. Environment variables (including those set by the .env file)
    2. YAML configuration file
    3. Defaults of the accessor functions

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.

    Raises:
        ConfigError: If the YAML file cannot be parsed or is not a mapping.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}
    config_path = config_file or default_config_file()
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load {config_path}: {e}") from e
        if isinstance(yaml_config, dict):
            _config.update(yaml_config)
            logger.info(f"Loaded configuration from YAML: {config_path}")
        elif yaml_config is not None:
            raise ConfigError(f"{config_path} must contain a mapping at the top level")
    else:
        logger.debug(f"YAML config file not found: {config_path}")

    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("No .env file found at or above the current directory.")

    _loaded = True


def _coerce(value: str) -> Any:
    """Converts an environment string to bool, int or float where it looks like one."""
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        return float(value) if "." in value else int(value)
    except ValueError:
        return value


def _env_key(key: str) -> str:
    return ENV_PREFIX + key.upper().replace(".", "__")


def _lookup(data: Dict[str, Any], key: str) -> Tuple[bool, Any]:
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, dict) or part not in current:
            return False, None
        current = current[part]
    return True, current


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by dotted key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable ``TRIAGECLI_SECTION__KEY``
    3. YAML config
    4. Default value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = _env_key(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    found, value = _lookup(_config, key)
    if found:
        return value

    logger.debug(f"Config key '{key}' not found. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def _positive_number(key: str, default: float, integer: bool = False) -> Any:
    value = get_config(key, default)
    try:
        number = int(value) if integer else float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{key}' must be a number, got {value!r}")
    if isinstance(value, bool) or number <= 0:
        raise ConfigError(f"'{key}' must be positive, got {value!r}")
    return number


# --- Convenience Functions ---

def get_ai_provider() -> str:
    """Gets the configured AI provider (``ai.provider``)."""
    provider = str(get_config("ai.provider", DEFAULT_PROVIDER)).lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigError(
            f"Unknown AI provider '{provider}'. Supported: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    return provider


def get_ai_model(provider: Optional[str] = None) -> Optional[str]:
    """Gets the model for a provider (``ai.<provider>.model``, then ``ai.model``)."""
    selected = provider or get_ai_provider()
    model = get_config(f"ai.{selected}.model") or get_config("ai.model")
    return str(model) if model else None


def get_api_key(provider: str) -> Optional[str]:
    """Gets a provider's API key from its environment variable or ``ai.<provider>.api_key``."""
    env_var = API_KEY_ENV_VARS.get(provider)
    if env_var is None:
        raise ConfigError(f"Unknown AI provider '{provider}'")
    key = os.environ.get(env_var) or get_config(f"ai.{provider}.api_key")
    return str(key) if key else None


def get_circuit_breaker_settings() -> Tuple[int, float]:
    """Returns ``(threshold, reset_seconds)`` for provider circuit breakers."""
    threshold = _positive_number("circuit_breaker.threshold", DEFAULT_CIRCUIT_BREAKER_THRESHOLD, integer=True)
    reset_seconds = _positive_number("circuit_breaker.reset_seconds", DEFAULT_CIRCUIT_BREAKER_RESET_SECONDS)
    return threshold, reset_seconds


def get_cache_ttl(name: str) -> timedelta:
    """Returns the TTL for one of the cache subdirectories (``models`` or ``triage``)."""
    if name == MODELS_SUBDIR:
        return timedelta(hours=_positive_number("cache.models_ttl_hours", DEFAULT_MODELS_TTL_HOURS))
    if name == TRIAGE_SUBDIR:
        return timedelta(minutes=_positive_number("cache.triage_ttl_minutes", DEFAULT_TRIAGE_TTL_MINUTES))
    raise ConfigError(f"Unknown cache '{name}'")


def get_cache_root() -> Path:
    """Returns ``cache.root`` if configured, otherwise the default cache directory."""
    root = get_config("cache.root")
    return Path(str(root)).expanduser() if root else cache_dir()


def get_log_level() -> int:
    """Returns the ``logging.level`` setting as a logging module level."""
    name = str(get_config("logging.level", "WARNING")).upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ConfigError(f"Invalid logging level '{name}'")
    return level


def get_log_file() -> Optional[str]:
    log_file = get_config("logging.file")
    return str(log_file) if log_file else None


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of dotted keys to values
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
