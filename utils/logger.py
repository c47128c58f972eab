"""Logging configuration with RotatingFileHandler."""

import logging
import os
from logging.handlers import RotatingFileHandler


LOGS_DIR = os.getenv("LOGS_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logger(name: str = "bowling_bot", level: int | str = LOG_LEVEL) -> logging.Logger:
    """
    Console plus a rotating file under LOGS_DIR (10 MB x 5).

    LOG_LEVEL and LOGS_DIR are read from the environment, not from settings.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    os.makedirs(LOGS_DIR, exist_ok=True)
    handlers = [
        logging.StreamHandler(),
        RotatingFileHandler(
            filename=os.path.join(LOGS_DIR, f"{name}.log"),
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        ),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # aiohttp and apscheduler are chatty at INFO
    for noisy in ("aiohttp.access", "apscheduler.executors.default"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


logger = setup_logger()
