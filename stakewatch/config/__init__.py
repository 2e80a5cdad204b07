"""
Configuration management for Stakewatch.

Loads and validates settings from environment variables and an optional
.env file. Exposes a single source of truth for thresholds and paths.
"""

from stakewatch.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
