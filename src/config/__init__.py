"""Configuration module for the task distribution service."""

from .database import DatabaseSettings
from .settings import Settings, get_settings

__all__ = [
    "DatabaseSettings",
    "Settings",
    "get_settings",
]
