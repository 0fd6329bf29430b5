# bookwise/utils/my_logging.py
"""Logging configuration"""
import logging
import sys
from typing import Optional

from bookwise.config.settings import get_settings

# Third-party loggers that drown out scheduling decisions at INFO
NOISY_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "httpx",
    "httpcore",
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "msal",
    "uvicorn.access",
)


def resolve_level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(verbose=True):
    """Configure application logging once, at startup"""
    settings = get_settings()
    level = resolve_level(settings.LOG_LEVEL)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    quiet_level = logging.WARNING if verbose else logging.ERROR
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, quiet_level))
