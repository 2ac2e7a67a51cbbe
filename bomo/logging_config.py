"""
Logging configuration for the BOMO API.

Every module logs through ``logging.getLogger(__name__)``; this sets up the
``bomo`` namespace logger those loggers propagate to.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """
    Configure the ``bomo`` logger with a single console handler.

    Safe to call more than once; existing handlers are replaced.

    Args:
        level: Logging level, as an int or a name such as ``"DEBUG"``

    Returns:
        The ``bomo`` namespace logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger("bomo")
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root_logger.addHandler(handler)

    # Quiet noisy libraries unless we are debugging
    if level > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return root_logger

