"""Root handler setup and per-player log context.

NOTE: This module lives under ``panelbus.logging`` which shadows the stdlib
``logging`` package.  All internal references therefore import the stdlib
via ``import logging as _logging`` to avoid circular-import issues.
"""

from __future__ import annotations

import logging as _logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, MutableMapping

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_LOG_FILE = "panelbus.log"

# Bus client libraries log every message at DEBUG; keep them quiet unless
# panelbus itself runs at DEBUG.
_BUS_LOGGERS = ("dbus_fast",)


def setup_logging(
    log_level: str = "INFO",
    log_dir: str | Path | None = None,
    *,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> Path | None:
    """Send records to stderr and, when *log_dir* is given, a rotating file.

    Replaces whatever handlers the root logger had, so calling it again
    reconfigures rather than duplicates.  Unknown level names fall back to
    ``INFO``.

    Returns:
        Path of the log file, or ``None`` when file logging is off.
    """
    level = _logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = _logging.INFO

    handlers: list[_logging.Handler] = [_logging.StreamHandler()]
    log_file: Path | None = None
    if log_dir is not None:
        log_file = Path(log_dir) / _LOG_FILE
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
            )
        )

    root = _logging.getLogger()
    for old in root.handlers[:]:
        root.removeHandler(old)
        old.close()

    formatter = _logging.Formatter(_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    bus_level = level if level <= _logging.DEBUG else max(level, _logging.WARNING)
    for name in _BUS_LOGGERS:
        _logging.getLogger(name).setLevel(bus_level)
    return log_file


class PlayerLogger(_logging.LoggerAdapter):
    """Tags every record with the player it concerns.

    Usage::

        log = PlayerLogger(_log, ":1.42", "org.mpris.MediaPlayer2.vlc")
        log.info("Player appeared")  # => "[owner=:1.42 player=vlc] Player appeared"
    """

    def __init__(self, logger: _logging.Logger, owner: str, bus_name: str | None = None) -> None:
        super().__init__(logger, {"owner": owner, "bus_name": bus_name})
        short = bus_name.rsplit(".", 1)[-1] if bus_name else None
        self._prefix = f"[owner={owner} player={short}]" if short else f"[owner={owner}]"

    @property
    def bus_name(self) -> str | None:
        return self.extra["bus_name"]

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return f"{self._prefix} {msg}", kwargs
