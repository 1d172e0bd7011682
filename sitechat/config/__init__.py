"""Configuration module - exports Settings and load_settings."""

from sitechat.config.loader import load_settings
from sitechat.config.settings import Settings

__all__ = ["Settings", "load_settings"]
