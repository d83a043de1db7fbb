"""Configuration loading, validation, and defaults."""

from argfolio.config.loader import ConfigError, load_config
from argfolio.config.schema import ArgfolioConfig

__all__ = ["load_config", "ArgfolioConfig", "ConfigError"]
