"""
Logging setup for the registration service.

``setup_logging`` attaches a console handler and, when a path is
given, a size-rotated file handler to the root logger.  Handlers it
installs are tagged, so calling it again (every ``create_app`` call
does) leaves the existing configuration alone unless ``force`` is set.
Handlers installed by others, such as pytest's capture handler, are
never touched.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_TAG = "_event_registration_handler"


def _owned_handlers(logger: logging.Logger) -> list:
    return [h for h in logger.handlers if getattr(h, _HANDLER_TAG, False)]


def setup_logging(
    level: str = "INFO",
    logfile: Optional[str] = None,
    force: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> None:
    """Configure the root logger.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"``; unknown names mean ``INFO``.
    logfile : Optional[str]
        Log file path.  The file is rotated at ``max_bytes`` keeping
        ``backup_count`` old files.
    force : bool
        Replace handlers from an earlier call.
    """
    root = logging.getLogger()
    owned = _owned_handlers(root)
    if owned and not force:
        return
    for handler in owned:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers: list = [logging.StreamHandler()]
    if logfile:
        log_path = Path(logfile).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_TAG, True)
        root.addHandler(handler)
