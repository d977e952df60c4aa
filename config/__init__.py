"""Configuration package."""

from config.settings import settings, Settings
from config.logging_config import setup_logging

__all__ = ["settings", "Settings", "setup_logging"]
