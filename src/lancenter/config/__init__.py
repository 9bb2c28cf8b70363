"""Configuration management for lancenter.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for the SSH password.
"""

from lancenter.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
