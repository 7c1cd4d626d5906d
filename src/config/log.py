"""Logging setup with rich console output and optional file output."""

import logging

from rich.logging import RichHandler

from src.config.schemas import LoggingConfig

PACKAGE_LOGGER = "src"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """
    Configure the package logger.

    Library modules only call ``logging.getLogger(__name__)``; handlers are
    attached here, once, by the application entry point.

    Args:
        config: Logging configuration (defaults if None)

    Returns:
        Configured package logger
    """
    config = config or LoggingConfig()
    logger = logging.getLogger(PACKAGE_LOGGER)
    level = getattr(logging, config.level.upper(), logging.INFO)
    logger.setLevel(level)

    # Avoid duplicate handlers on repeated setup
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        level=level,
        show_path=config.show_path,
        rich_tracebacks=True,
        markup=False,
    )
    logger.addHandler(console_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    return logger
