from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime
from pathlib import Path

_LOGGER = logging.getLogger("tabata.logging")
LOG_DIR_ENV = "TABATA_LOG_DIR"
DEBUG_ENV = "TABATA_DEBUG"
LOG_FILE = "tabata.log"
CONSOLE_FORMAT = "%(levelname)-7s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_configured = False


def get_log_dir() -> Path:
    configured = os.environ.get(LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "tabata" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / LOG_FILE


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.__stderr__)
    handler.setLevel(logging.DEBUG if os.environ.get(DEBUG_ENV) else logging.INFO)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler() -> logging.Handler:
    path = get_log_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def configure_logging(*, force: bool = False, console: bool = True) -> None:
    """Route ``tabata.*`` records to the log file and, optionally, stderr.

    Runs once per process unless ``force`` is set, which replaces the existing handlers
    (the TUI does this to take the console handler off the terminal it draws on). Without
    ``force`` the console handler is skipped when the root logger already has one.
    """
    global _configured
    if _configured and not force:
        return

    logger = logging.getLogger("tabata")
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers) if force else ():
        logger.removeHandler(handler)
        handler.close()

    if console and (force or not logging.getLogger().handlers):
        logger.addHandler(_console_handler())
    try:
        logger.addHandler(_file_handler())
    except OSError as exc:
        _LOGGER.warning("File logging disabled: %s", exc)

    logger.propagate = True
    _configured = True


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append ``exc`` with its traceback to the log file; returns the file on success."""
    path = get_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(
                f"[{datetime.now().isoformat()}] {context} failed: "
                f"{type(exc).__name__}: {exc}\n"
            )
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=handle)
            handle.write("\n")
    except OSError as log_exc:
        _LOGGER.warning("Failed to write log file: %s", log_exc)
        return None
    return path
