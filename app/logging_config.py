"""
Centralized logging configuration.

Sets up:
- Console handler (INFO level)
- Rotating file handler for the application log (DEBUG level)
- Separate file handler for the error log (ERROR level)

Chatty HTTP client loggers are capped at WARNING so chunk downloads do
not flood the debug log.
"""

import logging
import logging.config

from configs.config import get_config

cfg = get_config()

QUIET_LOGGERS = ("urllib3", "urllib3.connectionpool", "httpx", "httpcore", "pymongo")


def setup_logging() -> None:
    """Configure logging once at application startup."""
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": "INFO",
                "formatter": "default",
            },
            "app_log_handler": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": "DEBUG",
                "formatter": "default",
                "filename": cfg.LOG_FILE_APP,
                "maxBytes": cfg.LOG_MAX_BYTES,
                "backupCount": cfg.LOG_BACKUP_COUNT,
                "encoding": "utf8",
            },
            "error_log_handler": {
                "class": "logging.FileHandler",
                "level": "ERROR",
                "formatter": "default",
                "filename": cfg.LOG_FILE_ERRORS,
                "encoding": "utf8",
            },
        },
        "loggers": {
            name: {"level": "WARNING"} for name in QUIET_LOGGERS
        },
        "root": {
            "level": "DEBUG",
            "handlers": ["console", "app_log_handler", "error_log_handler"],
        },
    }

    logging.config.dictConfig(logging_config)
    logging.info("Logging configured successfully.")
