"""
Logging configuration for promo_api.

One ``promo_api`` logger with a console handler; modules log through named
children obtained from ``get_logger``. The level comes from ``LOG_LEVEL``.
"""
import logging
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

logger = logging.getLogger("promo_api")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(console_handler)

logger.propagate = False


def set_level(level: str) -> None:
    level = (level or "INFO").upper()
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def get_logger(name: str = None) -> logging.Logger:
    if name:
        return logging.getLogger(f"promo_api.{name}")
    return logger
