"""Configuration module for skycast."""

from skycast.config.loader import get_config_path, load_config, save_config
from skycast.config.schema import Config

__all__ = ["Config", "get_config_path", "load_config", "save_config"]
