"""Configuration schema and loaders."""

from offline_sync.config.loader import YamlConfigLoader
from offline_sync.config.models import AppConfig, ConfigLoadRequest

__all__ = ["AppConfig", "ConfigLoadRequest", "YamlConfigLoader"]
