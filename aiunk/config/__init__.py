"""Configuration module for the AI Unk backend."""

from aiunk.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
