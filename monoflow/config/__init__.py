"""
Configuration management for MonoFlow

This module provides configuration loading, validation, and management
for the MonoFlow differential expression pipeline.
"""

from .config import (Config, config_to_dict, get_default_config, load_config,
                     save_config, validate_config)
from .sample_config import ConditionConfig

__all__ = [
    "Config",
    "load_config",
    "save_config",
    "validate_config",
    "get_default_config",
    "config_to_dict",
    "ConditionConfig",
]
