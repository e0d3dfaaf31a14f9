"""Logger setup for the sitesift package (library modules only call getLogger)."""

import logging
import sys

LOGGER_NAME = "sitesift"
LOG_FORMAT = "[ %(asctime)s ] : %(levelname)s : %(name)s : %(message)s"
DATE_FORMAT = "%a %b %d %I:%M:%S %p %Y"


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """Attach a stderr handler (and optional file handler) to the package logger once."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicate handlers if called more than once (CLI re-entry, tests)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
