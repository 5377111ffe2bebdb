"""
Runtime configuration (pydantic-settings, read from the environment and .env).

    from config import get_settings

    backend = get_settings().vector_backend
"""

from config.settings import Settings, get_settings, get_settings_for_testing

__all__ = ["Settings", "get_settings", "get_settings_for_testing"]
