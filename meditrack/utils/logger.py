import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from meditrack.config import Settings, get_settings

ROOT_LOGGER_NAME = "meditrack"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
MAX_LOG_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUPS = 5

logger = logging.getLogger(ROOT_LOGGER_NAME)


def _rotating_file(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def configure_logging(settings: Settings) -> logging.Logger:
    """(Re)build the handlers of the ``meditrack`` logger from settings.

    Console output always; ``app.log`` (INFO) and ``errors.log`` (ERROR) under
    LOG_DIR when LOG_TO_FILE is on. Safe to call again: old handlers are closed
    and replaced, never stacked.
    """
    level = logging.DEBUG if settings.APP_DEBUG else logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console)

    if settings.LOG_TO_FILE:
        logs_dir = Path(settings.LOG_DIR)
        logs_dir.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_rotating_file(logs_dir / "app.log", logging.INFO))
        logger.addHandler(_rotating_file(logs_dir / "errors.log", logging.ERROR))

    return logger


configure_logging(get_settings())


def get_logger(name: str = None) -> logging.Logger:
    """Get a logger instance. If name is provided, returns a child logger."""
    if name:
        return logger.getChild(name)
    return logger
