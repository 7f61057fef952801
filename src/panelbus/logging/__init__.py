"""Logging setup and per-player log context."""

from panelbus.logging.logger import PlayerLogger, setup_logging

__all__ = ["setup_logging", "PlayerLogger"]
