"""Configuration module for the Wine Discovery Pipeline."""

from wine_discovery.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
