"""Service logger: a rotating file under LOG_DIR plus warnings on stderr."""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

SERVICE_LOGGER = "transfer_service"
LOG_FILE_NAME = "transfer_service.log"

_FORMATTER = logging.Formatter(
    "%(asctime)s %(levelname)s %(name)s: %(message)s",
    "%Y-%m-%d %H:%M:%S",
)


def setup_logging(log_dir: Path = None) -> logging.Logger:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    log_dir = Path(log_dir or os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(SERVICE_LOGGER)
    logger.setLevel(level)
    # reconfiguring replaces the handlers of an earlier call
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    to_file = RotatingFileHandler(log_dir / LOG_FILE_NAME, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    to_stderr = logging.StreamHandler()
    to_stderr.setLevel(logging.WARNING)
    for handler in (to_file, to_stderr):
        handler.setFormatter(_FORMATTER)
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
