"""
Logging setup for processes embedding the resilience layer.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import config

LOGGER_NAME = "polaris_resilience"


def setup_logging(log_dir: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger with console output and, when a log
    directory is set, a rotating file handler.

    ``.env`` is loaded first so LOG_LEVEL and POLARIS_LOG_DIR can live there.
    """
    load_dotenv()
    level_name = os.getenv("LOG_LEVEL", config.LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)
    log_dir = log_dir or os.getenv("POLARIS_LOG_DIR", config.LOG_DIR or "")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.LOG_FORMAT, datefmt=config.LOG_DATE_FORMAT)

    if log_dir:
        try:
            path = Path(log_dir)
            path.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                path / "polaris_resilience.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not create file logger in {log_dir}: {e}")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger
