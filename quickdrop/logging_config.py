import logging
import sys
from typing import Optional


def setup_logging(
    component_name: str = "quickdrop",
    log_level: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for the service.

    Args:
        component_name: Root logger name for the package
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to INFO

    Returns:
        Configured logger instance
    """
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    logger.addHandler(handler)
    logger.propagate = False

    return logger
