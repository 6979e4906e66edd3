"""
Logging setup for Foresight.

All loggers live under the ``foresight`` namespace so a single call to
:func:`setup_logging` configures the bot, the game core and the dashboard.
Credentials from the configuration are redacted before any handler
writes a record.
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from foresight.config import Config

ROOT_LOGGER = "foresight"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class SecretFilter(logging.Filter):
    """Replace registered secrets with [REDACTED] in messages and arguments."""

    def __init__(self, secrets: list[str] | None = None) -> None:
        super().__init__()
        # Very short values would redact ordinary words
        self._secrets = [s for s in (secrets or []) if s and len(s) > 3]
        self._pattern: re.Pattern[str] | None = None
        if self._secrets:
            self._pattern = re.compile(
                "|".join(re.escape(s) for s in self._secrets), re.IGNORECASE
            )

    def _redact(self, value: object) -> object:
        if isinstance(value, str) and self._pattern:
            return self._pattern.sub("[REDACTED]", value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._pattern:
            return True

        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)

        if isinstance(record.args, dict):
            record.args = {k: self._redact(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._redact(arg) for arg in record.args)

        return True


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the whole line by level on a TTY."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str | None = None, use_colors: bool = True) -> None:
        super().__init__(fmt)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.COLORS.get(record.levelno, "") if self.use_colors else ""
        return f"{color}{message}{self.RESET}" if color else message


def setup_logging(config: Config) -> None:
    """
    Configure the ``foresight`` logger tree.

    Installs a colored console handler, a plain file handler when
    ``config.log_file`` is set, and a :class:`SecretFilter` on both. The
    ``twitchio`` logger is attached to the same handlers at WARNING.

    Args:
        config: Loaded configuration
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, config.log_level, logging.INFO))
    logger.handlers.clear()

    secret_filter = SecretFilter(config.secrets)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
    console_handler.addFilter(secret_filter)
    logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.addFilter(secret_filter)
        logger.addHandler(file_handler)

    twitchio_logger = logging.getLogger("twitchio")
    twitchio_logger.setLevel(logging.WARNING)
    for handler in logger.handlers:
        twitchio_logger.addHandler(handler)

    logger.debug("Logging initialized with level %s", config.log_level)


def get_logger(name: str) -> logging.Logger:
    """Return a logger placed under the ``foresight`` namespace."""
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
