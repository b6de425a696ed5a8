import os
import logging
import logging.config
from pathlib import Path

# Base Paths
PACKAGE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_DIR.parent

# Logging Setup
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_FILE_PATH = os.getenv(
    "LOG_FILE_PATH",
    str((PROJECT_ROOT / "logs" / "vidcrop.log").resolve()),
)


def build_logging_config(
    log_file: str = LOG_FILE_PATH, level: str = LOG_LEVEL
) -> dict:
    """Console plus rotating file logging for the vidcrop loggers."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": LOG_FORMAT,
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": level,
                "formatter": "standard",
                "filename": log_file,
                "maxBytes": 10 * 1024 * 1024,  # 10 MB
                "backupCount": 5,
                "encoding": "utf8",
            },
        },
        "loggers": {
            "vidcrop": {
                "handlers": ["console", "file"],
                "level": level,
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        },
    }


LOGGING_CONFIG = build_logging_config()


def configure_logging(config: dict = LOGGING_CONFIG) -> logging.Logger:
    """Apply the logging config, creating the log directory first."""
    log_file = config.get("handlers", {}).get("file", {}).get("filename")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(config)
    return logging.getLogger("vidcrop")
