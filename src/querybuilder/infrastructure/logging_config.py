"""
Logging configuration for querybuilder.

Console output plus one log file per run in the persistent data directory.
The previous run's log is kept as log.old.txt.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from .paths import get_log_file_path, get_old_log_file_path


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def rotate_log_files(log_file: Optional[Path] = None, old_log_file: Optional[Path] = None) -> None:
    """
    Move the last run's log aside before a new run starts logging.

    Only the current and the previous run are kept: an existing
    log.old.txt is deleted before log.txt replaces it.
    """
    log_file = log_file or get_log_file_path()
    old_log_file = old_log_file or get_old_log_file_path()

    if not log_file.exists():
        return

    try:
        if old_log_file.exists():
            old_log_file.unlink()
        log_file.rename(old_log_file)
    except OSError as e:
        # Logging is not configured yet
        print(f"Warning: Could not rotate log file: {e}", file=sys.stderr)


def parse_level(level: Union[int, str]) -> int:
    """
    Convert a level name such as "DEBUG" to its logging constant.

    Unknown names fall back to INFO.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    log_to_file: bool = True
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level, as a constant or a name.
        log_file: Log file path. Defaults to log.txt in the data directory.
        format_string: Custom format of log records.
        log_to_file: Whether to write a log file at all.
    """
    level = parse_level(level)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]

    if log_to_file:
        if log_file is None:
            log_file = get_log_file_path()
            rotate_log_files(log_file, get_old_log_file_path())
        else:
            rotate_log_files(log_file, log_file.with_suffix('.old' + log_file.suffix))

        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8', mode='w')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        handlers=handlers,
        force=True  # Replace handlers from earlier calls
    )

    # qt-material reports every missing theme resource at INFO
    logging.getLogger("qt_material").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__).
    """
    return logging.getLogger(name)
