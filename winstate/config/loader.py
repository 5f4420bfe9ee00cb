"""Configuration loading for winstate.

This module handles loading configuration from YAML files
and environment variables.

Contract:
- Inputs: Config file paths, environment variables
- Outputs: WinstateSettings objects
- Side Effects: Creates default config file if missing
"""

import logging
import os
from pathlib import Path

import yaml

from ..storage.paths import get_config_dir
from .settings import WinstateSettings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = """# winstate configuration
# Environment variables prefixed with WINSTATE_ override these values

log_level: "info"

# Key looked up in each app's "refs" mapping, and the package driver in use
platform: "windows"
driver: "winget"

# Emit the NDJSON progress stream on stderr
events_enabled: false

# Upper bound (seconds) for winget and tool version probes
probe_timeout_seconds: 15

# Report uninstall entries that match no known software pattern
include_unmatched_registry: false

# Extra glob patterns the export policy flags as sensitive
sensitive_patterns: []

# Profiles directory
# Default: $WINSTATE_HOME/profiles
# profiles_dir: "~/winstate-profiles"
"""


def get_config_path() -> Path:
    """Get path to config file.

    Returns:
        Path to winstate.yaml in config directory

    Example:
        >>> config_path = get_config_path()
        >>> assert config_path.name == "winstate.yaml"
    """
    return get_config_dir() / "winstate.yaml"


def create_default_config() -> None:
    """Create default config file if it doesn't exist."""
    config_path = get_config_path()

    if config_path.exists():
        logger.debug(f"Config file already exists: {config_path}")
        return

    config_path.write_text(DEFAULT_CONFIG, encoding="utf-8")
    logger.info(f"Created default config: {config_path}")


def load_config(config_path: Path | None = None) -> WinstateSettings:
    """Load configuration from YAML and environment.

    Environment variables take precedence over YAML settings.
    Variables should be prefixed with WINSTATE_ (e.g., WINSTATE_DRIVER).

    Args:
        config_path: Optional config file path (default: winstate.yaml in config dir)

    Returns:
        Validated settings
    """
    if config_path is None:
        config_path = get_config_path()

    if not config_path.exists():
        create_default_config()

    yaml_settings = {}
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_settings = yaml.safe_load(f) or {}
            if not isinstance(yaml_settings, dict):
                raise ValueError("top level must be a mapping")
            logger.debug(f"Loaded config from {config_path}")
        except (yaml.YAMLError, ValueError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
            logger.info("Using default settings and environment variables")
            yaml_settings = {}

    # defaults < YAML < env vars: only pass YAML values without an env counterpart
    filtered_yaml = {}
    for key, value in yaml_settings.items():
        env_key = f"WINSTATE_{str(key).upper()}"
        if env_key not in os.environ:
            filtered_yaml[key] = value

    settings = WinstateSettings(**filtered_yaml)

    logger.debug(
        f"Configuration loaded: platform={settings.platform}, driver={settings.driver}, "
        f"events_enabled={settings.events_enabled}"
    )

    return settings
