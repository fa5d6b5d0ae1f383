import logging
import sys
from typing import Optional, TextIO


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Attach a single console handler to the package logger.

    The handler writes to stdout unless `stream` says otherwise. Safe to call
    more than once; later calls only adjust the level.
    """
    logger = logging.getLogger("file_workflow")
    logger.setLevel(level.upper())
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    logger.addHandler(console_handler)
    return logger
