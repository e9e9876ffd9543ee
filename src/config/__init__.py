"""Configuration module -- exports Settings and the YAML loader."""

from src.config.loader import load_config, provider_limits
from src.config.settings import Settings

__all__ = ["Settings", "load_config", "provider_limits"]
