"""Logging setup for the control surface."""
import logging
import sys
from typing import Optional

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None,
                  console: bool = True) -> logging.Logger:
    """Configure the root logger.

    Args:
        level: Logging level (e.g. logging.DEBUG).
        log_file: Optional path to also write logs to.
        console: Emit to stderr. Turned off while the TUI owns the terminal.

    Returns:
        The configured root logger.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers when called twice
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(FORMAT, datefmt='%H:%M:%S')

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    logger.debug("Logging initialized.")
    return logger
