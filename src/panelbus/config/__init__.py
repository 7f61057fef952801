"""Configuration: JSON config file loading with env overrides."""

from panelbus.config.config_manager import load_config

__all__ = ["load_config"]
