"""Configuration adapters."""

from safeping.adapters.config.app_config import AppConfig

__all__ = ["AppConfig"]
