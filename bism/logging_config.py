"""
BISM EERR - Logging Configuration
dictConfig settings for scripts and host applications embedding the core.
"""
import logging.config
from typing import Optional

from bism.config import get_settings

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(levelname)s %(name)s: %(message)s"},
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "simple",
        },
    },
    "loggers": {
        "bism": {
            "level": "INFO",
            "handlers": ["console"],
            "propagate": False,
        },
        # openpyxl warns on every workbook with data validation or unknown extensions
        "openpyxl": {"level": "ERROR", "propagate": True},
    },
}


def configure_logging(level: Optional[str] = None, verbose: bool = False) -> None:
    """Apply LOGGING, with the bism logger level taken from settings unless given."""
    settings = get_settings()
    config = {
        **LOGGING,
        "handlers": {
            "console": {**LOGGING["handlers"]["console"], "formatter": "verbose" if verbose else "simple"},
        },
        "loggers": {
            **LOGGING["loggers"],
            "bism": {**LOGGING["loggers"]["bism"], "level": (level or settings.log_level).upper()},
        },
    }
    logging.config.dictConfig(config)
