"""Loads ``panelbus_config.json``, layers ``PANELBUS_*`` env vars on top, validates."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Mapping

from panelbus.core.models.config import PanelConfig

_log = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "panelbus_config.json"
_CONFIG_FILE_ENV = "PANELBUS_CONFIG_FILE"

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def _flag(value: str) -> bool:
    word = value.strip().lower()
    if word in _TRUE:
        return True
    if word in _FALSE:
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


def _optional_dir(value: str) -> str | None:
    return value or None


_ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "PANELBUS_LOG_LEVEL": ("system", "log_level", str.upper),
    "PANELBUS_LOG_DIR": ("system", "log_dir", _optional_dir),
    "PANELBUS_TRANSPORT": ("system", "transport", str),
    "PANELBUS_MEDIA_PLAYER_ENABLED": ("media_player", "enabled", _flag),
    "PANELBUS_IDLE_INHIBITOR_ENABLED": ("idle_inhibitor", "enabled", _flag),
}


def load_config(config_path: Path | str | None = None) -> PanelConfig:
    """Build the validated configuration.

    The file is *config_path*, else ``$PANELBUS_CONFIG_FILE``, else the
    copy shipped beside this module.  An empty ``PANELBUS_LOG_DIR`` turns
    file logging off.

    Raises:
        FileNotFoundError: If the chosen file does not exist.
        ValueError: If an override cannot be parsed (e.g. ``ENABLED=maybe``).
        pydantic.ValidationError: If the merged settings are invalid.
    """
    path = _resolve_config_path(config_path)
    _log.info("Loading config from %s", path)
    raw = json.loads(path.read_text(encoding="utf-8"))
    _apply_env_overrides(raw, os.environ)
    return PanelConfig.model_validate(raw)


def _apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> None:
    for env_key, (section, field, parse) in _ENV_OVERRIDES.items():
        value = environ.get(env_key)
        if value is None:
            continue
        try:
            parsed = parse(value)
        except ValueError as exc:
            raise ValueError(f"{env_key}: {exc}") from exc
        raw.setdefault(section, {})[field] = parsed
        _log.debug("%s overrides %s.%s", env_key, section, field)


def _resolve_config_path(config_path: Path | str | None) -> Path:
    if config_path is None:
        config_path = os.environ.get(_CONFIG_FILE_ENV) or _DEFAULT_CONFIG_PATH
    path = Path(config_path)
    if not path.is_file():
        raise FileNotFoundError(
            f"No config file at {path}; pass a path or set {_CONFIG_FILE_ENV}"
        )
    return path
