"""Configuration package."""

from explorer.config.settings import Settings

__all__ = ["Settings"]
