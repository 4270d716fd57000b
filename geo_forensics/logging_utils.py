"""
logging_utils.py

Wrapper around the standard logging module that provides a
consistent logger configuration for all reconciliation modules.
"""

import logging


def get_logger(name: str = "geo_forensics") -> logging.Logger:
    """
    Create a consistent logger for reconciliation modules.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
        handler.setFormatter(logging.Formatter(fmt=fmt))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger
