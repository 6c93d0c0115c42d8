"""Logging configuration for the triagecli application.

Log records go to stderr so progress and results on stdout stay clean. Level,
format and an optional log file come from the ``logging`` configuration
section; ``--verbose`` forces DEBUG.
"""

import logging
import sys
from typing import List, Optional

from triagecli.infrastructure.config import settings

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers kept at WARNING unless debugging
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "groq")

logger = logging.getLogger(__name__)


def _open_log_file(log_file: str) -> Optional[logging.Handler]:
    try:
        return logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        logger.error(f"Cannot write log file {log_file}: {e}")
        return None


def configure_logging(verbose: bool = False) -> int:
    """Configures the root logger from the loaded configuration.

    Replaces any handlers installed by an earlier call, so invoking it once
    per command is safe.

    Args:
        verbose: Log at DEBUG regardless of the configured level.

    Returns:
        The effective log level.

    Raises:
        ConfigError: If the configured level is not a logging level name.
    """
    level = logging.DEBUG if verbose else settings.get_log_level()
    log_format = str(settings.get_config("logging.format", DEFAULT_LOG_FORMAT))
    log_file = settings.get_log_file()

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    logging.basicConfig(level=level, format=log_format, handlers=handlers, force=True)

    if log_file:
        file_handler = _open_log_file(log_file)
        if file_handler is not None:
            file_handler.setFormatter(logging.Formatter(log_format))
            logging.getLogger().addHandler(file_handler)

    third_party_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    logger.debug(f"Logging configured: level={logging.getLevelName(level)}, file={log_file or '-'}")
    return level
