"""
Logging setup for the EduRecord platform.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level="INFO") -> logging.Logger:
    """Configure the root logger with a stdout handler and return the package logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True
    )
    return logging.getLogger("edurecord")
