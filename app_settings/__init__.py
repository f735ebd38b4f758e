"""
Application settings package for the Relay service.

This package provides centralized, type-safe configuration management
using Pydantic settings.
"""

from app_settings.settings import DEVELOPMENT, Settings, load_settings

__all__ = ["DEVELOPMENT", "Settings", "load_settings"]
