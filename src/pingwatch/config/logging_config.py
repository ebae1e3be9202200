import logging
import logging.config
import os

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_FILE = os.getenv("LOG_FILE")


def build_logging_config(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE) -> dict:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "level": level,
        },
    }
    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": log_file,
            "formatter": "default",
            "level": level,
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": LOG_FORMAT,
            },
        },
        "handlers": handlers,
        "root": {
            "handlers": list(handlers),
            "level": level,
        },
    }


def setup_logging(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE):
    logging.config.dictConfig(build_logging_config(level, log_file))
