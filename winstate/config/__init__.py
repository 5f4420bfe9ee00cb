"""Configuration module for winstate.

Provides tool configuration loading from YAML and environment variables.

Public Interface:
    - WinstateSettings: Settings model
    - load_config: Load configuration
    - create_default_config: Create default config file
    - get_config_path: Get config file path
"""

from .loader import create_default_config
from .loader import get_config_path
from .loader import load_config
from .settings import WinstateSettings

__all__ = [
    "WinstateSettings",
    "load_config",
    "create_default_config",
    "get_config_path",
]
