# vault/core/logging.py
import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "vault"


def configure_logging(level: int | str = logging.WARNING) -> logging.Logger:
    """
    Attach a rich stderr handler to the package logger.
    Safe to call more than once; previous handlers are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if logger.handlers:
        logger.handlers.clear()

    # Console(stderr=True) looks up sys.stderr on every write
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Child logger under the vault namespace."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)
