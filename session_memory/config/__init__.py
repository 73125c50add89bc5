"""Configuration for the session memory service."""

from .settings import IntelligenceCfg, MemoryCfg, Paths, Settings, load_settings_from_env
from .log_setup import configure_logging

__all__ = [
    "IntelligenceCfg",
    "MemoryCfg",
    "Paths",
    "Settings",
    "load_settings_from_env",
    "configure_logging",
]
