"""
Results core library containing logging helper functionality
"""

import logging
from typing import Optional


def enforce_logger(logger: Optional[logging.Logger] = None) -> logging.Logger:
    """
    Return the given logger or a fallback logger of this module, which complains about its usage

    :raises TypeError: when something other than a logger was given
    """

    if logger is None:
        fallback = logging.getLogger(__name__)
        fallback.warning("Called without a logger, falling back to the module logger.")
        return fallback
    if not isinstance(logger, logging.Logger):
        raise TypeError(f"Expected 'logging.Logger', got {type(logger)}")
    return logger


class NoDebugFilter(logging.Filter):
    """
    Logging filter dropping DEBUG records of the named logger (and its children) only

    Records of any other logger pass regardless of their level.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not super().filter(record):
            return True
        return record.levelno > logging.DEBUG
