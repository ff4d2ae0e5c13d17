"""
Logging configuration for bakery-planning.

Library modules only call logging.getLogger(__name__); handlers are installed
on the "bakery_planning" logger by the entry point (tools/plan_week.py):

- Rotating daily file under the logs directory (INFO and above)
- stderr console whose level follows the -v/--verbose count, so stdout stays
  clean for the JSON plan

Skipped rows are logged at DEBUG and only show up with -vv.
"""
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Union


APP_LOGGER = "bakery_planning"

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"

_VERBOSITY_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


def verbosity_to_level(verbose: int) -> int:
    """
    Map a -v count to a console level.

    0 → WARNING, 1 → INFO, 2 or more → DEBUG.
    """
    index = min(max(0, int(verbose)), len(_VERBOSITY_LEVELS) - 1)
    return _VERBOSITY_LEVELS[index]


def reset_logging(app_name: str = APP_LOGGER) -> None:
    """Close and detach the application logger's handlers and clear its level."""
    logger = logging.getLogger(app_name)
    logger.setLevel(logging.NOTSET)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def setup_logging(
    log_dir: Optional[Union[str, Path]] = None,
    console_level: int = logging.WARNING,
    file_level: int = logging.INFO,
    app_name: str = APP_LOGGER,
) -> logging.Logger:
    """
    Install file and console handlers on the application logger.

    Calling it again replaces the handlers, so a second run in the same
    process picks up the new levels and log directory.

    Args:
        log_dir: Directory for log files (created if missing); None uses
                 utils.paths.get_logs_dir()
        console_level: Threshold for the stderr handler
        file_level: Threshold for the rotating file handler
        app_name: Logger name; "bakery_planning" covers every package module

    Returns:
        Configured logger instance
    """
    if log_dir is None:
        from .paths import get_logs_dir  # noqa: PLC0415
        log_path = get_logs_dir()
    else:
        log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    reset_logging(app_name)
    logger = logging.getLogger(app_name)
    logger.setLevel(min(console_level, file_level))

    log_file = log_path / f"{app_name}_{datetime.now().strftime('%Y%m%d')}.log"
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console_handler)

    return logger


def get_logger(name: str = APP_LOGGER) -> logging.Logger:
    """Logger under the application namespace."""
    return logging.getLogger(name)
