"""
Logging setup for the re-scoring console.

Handlers live on one application logger, ``rescore``. Modules ask for a
child of it with ``get_logger(__name__)`` and inherit its console and
rotating file handlers, so the CLI can retune everything with one
``set_level()`` call.
"""
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from .constants import (
    LOG_LEVEL, LOG_FORMAT, LOG_FILE,
    LOG_MAX_SIZE_MB, LOG_BACKUP_COUNT
)

ROOT_LOGGER_NAME = 'rescore'


def _qualify(name: Optional[str]) -> str:
    if not name or name == ROOT_LOGGER_NAME:
        return ROOT_LOGGER_NAME
    if name.startswith(ROOT_LOGGER_NAME + '.'):
        return name
    return f'{ROOT_LOGGER_NAME}.{name}'


def _level_value(level: str) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logger(level: str = LOG_LEVEL, log_file: str = LOG_FILE) -> logging.Logger:
    """
    Configure the application logger once and return it.

    Later calls return the already configured logger unchanged.

    Args:
        level: Initial level name, e.g. 'INFO'
        log_file: Path of the rotating DEBUG log

    Returns:
        The ``rescore`` logger.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    root.setLevel(_level_value(level))
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)
    root.addHandler(console)

    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=LOG_MAX_SIZE_MB * 1024 * 1024,
        backupCount=LOG_BACKUP_COUNT
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    return root


def get_logger(name: str = None) -> logging.Logger:
    """
    Logger for one module, a child of the application logger.

    Usage:
        from config.logging_config import get_logger
        logger = get_logger(__name__)   # -> 'rescore.reevaluation.poller'
    """
    setup_logger()
    return logging.getLogger(_qualify(name))


def set_level(level: str):
    """
    Change how much the console shows (CLI --verbose).

    The application logger is only ever lowered, so the file log keeps at
    least its configured detail when the console is quietened.
    """
    root = setup_logger()
    numeric = _level_value(level)

    if numeric < root.level:
        root.setLevel(numeric)
    console = console_handler()
    if console is not None:
        console.setLevel(numeric)


def console_handler() -> Optional[logging.Handler]:
    """The console handler of the application logger, if configured."""
    for handler in setup_logger().handlers:
        # RotatingFileHandler is a StreamHandler subclass
        if type(handler) is logging.StreamHandler:
            return handler
    return None
