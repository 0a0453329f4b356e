"""
Storefront logging.

All module loggers hang off the "storefront" logger, which writes to stdout
at the level named by StorefrontConfig.log_level (LOG_LEVEL in the
environment or storefront.log_level in the YAML file).
"""
import logging
import sys
from typing import Optional

from storefront.config import get_config

ROOT_NAME = "storefront"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(ROOT_NAME)


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(str(name).strip().upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    (Re)apply the storefront log level. Without an argument the level comes
    from the active config, so calling this after set_config() picks it up.
    """
    resolved = _resolve_level(level or get_config().log_level)
    logger.setLevel(resolved)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setLevel(resolved)

    # Uvicorn installs its own root handlers
    logger.propagate = False
    return logger


configure_logging()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Child of the storefront logger, e.g. get_logger("cart") -> storefront.cart."""
    if name:
        return logging.getLogger(f"{ROOT_NAME}.{name}")
    return logger
