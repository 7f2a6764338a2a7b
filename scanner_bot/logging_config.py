"""Logging configuration for the scanner bot."""
import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FILENAME = "scanner_bot.log"


def get_logging_config(
    logs_folder: Optional[Path] = None,
    log_filename: str = LOG_FILENAME,
    verbose: bool = False
) -> Dict[str, Any]:
    """Get logging configuration dictionary.

    Console output always goes through rich; a detailed file log is added
    when ``logs_folder`` is given.
    """
    console_level = "DEBUG" if verbose else "INFO"
    handlers: Dict[str, Any] = {
        "console": {
            "class": "rich.logging.RichHandler",
            "level": console_level,
            "formatter": "console",
            "rich_tracebacks": True,
            "show_path": False,
        }
    }

    if logs_folder is not None:
        logs_folder.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "level": "DEBUG" if verbose else "INFO",
            "formatter": "detailed",
            "filename": str(logs_folder / log_filename),
            "mode": "a",
            "encoding": "utf-8"
        }

    handler_names = list(handlers)
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(message)s",
                "datefmt": "[%X]"
            },
            "detailed": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
            }
        },
        "handlers": handlers,
        "root": {
            "level": "WARNING",
            "handlers": handler_names
        },
        "loggers": {
            "scanner_bot": {
                "level": "DEBUG" if verbose else "INFO",
                "handlers": handler_names,
                "propagate": False
            }
        }
    }


def setup_logging(
    logs_folder: Optional[Path] = None,
    log_filename: str = LOG_FILENAME,
    verbose: bool = False
) -> None:
    """Set up logging with the specified configuration."""
    config = get_logging_config(logs_folder, log_filename, verbose)

    # Clear any existing handlers to prevent duplicate logs
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    logging.config.dictConfig(config)
