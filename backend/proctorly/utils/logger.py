"""
Proctorly Structured Logger
"""

import logging
import sys


def setup_logging(level: str = "INFO"):
    """Configure structured logging for Proctorly"""
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Root Proctorly logger
    logger = logging.getLogger("proctorly")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Repeated app construction (tests, reloads) must not stack handlers
    if not any(getattr(h, "_proctorly", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        handler._proctorly = True
        logger.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)

    return logger
