"""Configuration module for wtcache."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
