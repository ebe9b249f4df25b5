"""
Logging infrastructure.

Every module logs through ``logging.getLogger(__name__)``; this module only
installs the handler and format.
"""
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance.

    Args:
        name: Logger name (usually module name)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure the root logger with the shared format."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
