"""Configuration module for Site Inspector."""

from site_inspector.config.settings import (
    DEFAULT_RELAY_ENDPOINTS,
    DEFAULT_USER_AGENT,
    Settings,
    get_settings,
)

__all__ = ["Settings", "get_settings", "DEFAULT_RELAY_ENDPOINTS", "DEFAULT_USER_AGENT"]
