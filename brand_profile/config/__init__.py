"""Configuration for the brand profile pipeline."""

from brand_profile.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
