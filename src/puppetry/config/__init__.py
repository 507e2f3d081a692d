"""Configuration: YAML + env overlay."""

from puppetry.config.loader import load_config, load_config_with_env
from puppetry.config.schema import Config

__all__ = ["Config", "load_config", "load_config_with_env"]
