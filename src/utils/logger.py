"""
Logging setup shared by the data library services
"""

import os
import logging


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name: str, level: str = None) -> logging.Logger:
    """Return a logger with a single stream handler attached"""
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv('LOG_LEVEL', 'INFO')).upper())

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger
