"""Configuration module for tapback."""

from tapback.config.loader import load_config, get_config_path
from tapback.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
