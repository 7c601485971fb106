"""Configuration module for the Top.gg client."""

from .settings import MIN_AUTOPOSTER_INTERVAL_SECONDS, Settings, get_settings

__all__ = ["MIN_AUTOPOSTER_INTERVAL_SECONDS", "Settings", "get_settings"]
