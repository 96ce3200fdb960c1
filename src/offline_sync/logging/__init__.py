from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

from offline_sync.config.models import LoggingSettings

_LOG_FORMAT = "[%(asctime)s][%(levelname)s][%(name)s] %(message)s"
_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")


def _resolve_level(name: str) -> int:
    level = logging.getLevelNamesMapping().get(name.strip().upper())
    if level is None:
        raise ValueError(f"Invalid logging level: {name}")
    return level


def init_logging(settings: LoggingSettings, *, level_override: Optional[str] = None) -> None:
    """
    Configure the root logger for the sync core.

    Logs always go to stderr; when `settings.file.path` is set they are also written to a
    file rotated at midnight. Third-party loggers are capped at WARNING unless DEBUG is
    requested.
    """

    level = _resolve_level(level_override or settings.level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    file_path = settings.file.path.strip()
    if not file_path:
        return

    try:
        file_path_obj = Path(file_path)
        file_path_obj.parent.mkdir(parents=True, exist_ok=True)

        file_handler = TimedRotatingFileHandler(
            filename=str(file_path_obj),
            when="midnight",
            interval=1,
            backupCount=settings.file.rotation.backup_count,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y-%m-%d"
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
    except OSError:
        root_logger.error(
            "File logging handler failed to initialize. path=%s",
            file_path,
            exc_info=True,
        )


__all__ = ["init_logging"]
