"""Configuration module for disco."""

from disco.config.loader import get_config_path, load_config, save_config
from disco.config.schema import Config, SchedulerConfig, SessionConfig

__all__ = [
    "Config",
    "SchedulerConfig",
    "SessionConfig",
    "get_config_path",
    "load_config",
    "save_config",
]
