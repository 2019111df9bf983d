# ============================================
#   Acaragraph — Logging
#   log_info("presence", "...") → acaragraph.presence
# ============================================

import os
import logging
from logging.handlers import TimedRotatingFileHandler

from acaragraph.config import LOG_FILE, LOG_LEVEL, LOG_TO_CONSOLE

ROOT_LOGGER_NAME = "acaragraph"

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def build_handlers(log_file=LOG_FILE, console=LOG_TO_CONSOLE):
    """
    Handlers for the acaragraph logger.

    - `log_file` set   → midnight-rotating file, 30 days kept; its folder
                         is created here, wherever ACARA_LOG_FILE points
    - `log_file` empty → no file at all
    - `console`        → stderr stream as well

    Never returns an empty list: with no file and no console, the
    stream handler is kept so warnings are not lost.
    """
    handlers = []

    if log_file:
        folder = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(folder, exist_ok=True)
        handlers.append(TimedRotatingFileHandler(
            log_file,
            when="midnight",
            backupCount=30,
            encoding="utf-8",
        ))

    if console or not handlers:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure(log_file=LOG_FILE, console=LOG_TO_CONSOLE, level=LOG_LEVEL) -> logging.Logger:
    """Attach handlers to the acaragraph logger, once."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level, logging.INFO))
    for handler in build_handlers(log_file, console):
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(module_name: str) -> logging.Logger:
    return configure().getChild(module_name)


def log_info(module: str, message: str):
    get_logger(module).info(message)


def log_warning(module: str, message: str):
    get_logger(module).warning(message)


def log_error(module: str, message: str):
    get_logger(module).error(message)


def log_exception(module: str, message: str):
    """Inside an except block only: the traceback is attached."""
    get_logger(module).exception(message)
