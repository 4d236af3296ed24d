"""Configuration module for the Resonance agent core."""

from .defaults import get_default_config
from .logging_config import get_logging_config
from .manager import ConfigManager, create_config_manager
from .providers import (
    ConfigProvider,
    LayeredConfigProvider,
    LocalFileConfigProvider,
)
from .settings import ChatSettings, Settings, settings

__all__ = [
    "settings",
    "Settings",
    "ChatSettings",
    "get_logging_config",
    "ConfigManager",
    "create_config_manager",
    "ConfigProvider",
    "LayeredConfigProvider",
    "LocalFileConfigProvider",
    "get_default_config",
]
