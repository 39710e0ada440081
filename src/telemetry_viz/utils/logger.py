import logging
import sys
import os
from logging.handlers import RotatingFileHandler
from telemetry_viz.config import settings

LOG_FILE_NAME = "telemetry_viz.log"
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def log_file_path() -> str:
    return os.path.join(settings.LOG_DIR, LOG_FILE_NAME)


def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger writing to stdout and to a size-capped file in LOG_DIR.
    Handlers are attached once per name.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    logger.propagate = False

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # --- File Handler ---
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_file_path(),
        maxBytes=settings.LOG_FILE_MAX_MB * 1024 * 1024,
        backupCount=settings.LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
