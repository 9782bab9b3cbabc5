"""
Logging setup shared by every modwarden module.

``get_logger(name)`` hands out one non-propagating logger per name with two
handlers: the console (printed through prompt_toolkit, colored when stderr is
a terminal) and a size-rotated log file shared by the whole run. The console
threshold comes from ``MODWARDEN_LOG_LEVEL`` (default ``INFO``); the file
always receives DEBUG.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

LOGS_DIR: Path = (Path(__file__).parents[3] / "logs").resolve()
LOGS_DIR.mkdir(parents=True, exist_ok=True)

LOG_FORMAT: str = "[%(asctime)s] [%(levelname)s] [%(name)s:%(funcName)s:%(lineno)d] %(message)s"
DATE_FORMAT: str = "%Y-%m-%d %H-%M-%S"

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 5

LOG_COLORS = {
    "DEBUG": "\033[36m",          # cyan
    "INFO": "\033[32m",           # green
    "WARNING": "\033[33m",        # yellow
    "ERROR": "\033[31m",          # red
    "CRITICAL": "\033[38;5;88m",  # dark red
}
RESET_COLOR = "\033[0m"

# Library loggers clamped to ERROR; aiohttp in particular logs every request.
NOISY_LOGGERS = ["aiohttp", "aiohttp.access", "aiohttp.client", "aiosqlite", "asyncio"]

LOG_FILEPATH: Path | None = None


class ColorFormatter(logging.Formatter):
    """Formatter that wraps each line in the ANSI color of its level."""

    def format(self, record: logging.LogRecord) -> str:
        color = LOG_COLORS.get(record.levelname, "")
        message = super().format(record)
        return f"{color}{message}{RESET_COLOR}" if color else message


class PromptToolkitHandler(logging.Handler):
    """Console handler printing through ``print_formatted_text``.

    Going through prompt_toolkit keeps log lines from tearing an active
    prompt when the warden runs in an interactive terminal.
    """

    def __init__(self, formatter: logging.Formatter | None = None):
        super().__init__()
        if formatter:
            self.setFormatter(formatter)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


def console_level() -> int:
    """Console threshold from ``MODWARDEN_LOG_LEVEL``; unknown names fall back to INFO."""
    level = logging.getLevelName(os.getenv("MODWARDEN_LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


plain_formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
console_formatter = ColorFormatter(LOG_FORMAT, datefmt=DATE_FORMAT) if should_use_color() else plain_formatter


def get_log_filepath() -> Path:
    """Return this run's log file, named after the time of the first call."""
    global LOG_FILEPATH

    if LOG_FILEPATH is None:
        LOG_FILEPATH = LOGS_DIR / f"{datetime.now().strftime(DATE_FORMAT)}.log"
    return LOG_FILEPATH


def setup_logger(logger_name: str) -> logging.Logger:
    """Attach the console and file handlers to ``logger_name`` once and return it."""
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console_handler = PromptToolkitHandler(formatter=console_formatter)
    console_handler.setLevel(console_level())
    logger.addHandler(console_handler)

    file_handler = RotatingFileHandler(
        get_log_filepath(),
        encoding="utf-8",
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(plain_formatter)
    logger.addHandler(file_handler)

    return logger


def get_logger(logger_name: str) -> logging.Logger:
    """Retrieve a logger configured for modwarden, creating it if necessary."""
    return setup_logger(logger_name)


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` replacement that logs uncaught exceptions.

    KeyboardInterrupt goes to the default hook so Ctrl+C still exits quietly.
    """
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    logging.error("Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback))


def silence_noisy_loggers(names=NOISY_LOGGERS) -> None:
    for name in names:
        library_logger = logging.getLogger(name)
        library_logger.setLevel(logging.ERROR)
        library_logger.propagate = False
        library_logger.handlers = []


silence_noisy_loggers()
