"""Path resolution for winstate storage locations.

This module provides path resolution based on the WINSTATE_HOME environment
variable, following an XDG-like directory structure within that root.

Contract:
- Inputs: Environment variables (WINSTATE_HOME and per-directory overrides)
- Outputs: Resolved Path objects
- Side Effects: Creates directories if they don't exist
"""

import os
from pathlib import Path


def get_home_dir() -> Path:
    """Get WINSTATE_HOME from environment.

    Returns:
        Path to root directory (default: .winstate)
    """
    root = os.environ.get("WINSTATE_HOME", ".winstate")
    return Path(root).resolve()


def _resolve_dir(default: Path, env_var: str) -> Path:
    directory = default

    env_override: str | None = os.environ.get(env_var)
    if env_override is not None:
        directory = Path(env_override).expanduser().resolve()

    directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_config_dir() -> Path:
    """Get configuration directory.

    Returns:
        Path to config directory ($WINSTATE_HOME/config)
    """
    return _resolve_dir(get_home_dir() / "config", "WINSTATE_CONFIG_DIR")


def get_state_dir() -> Path:
    """Get state directory.

    Returns:
        Path to state directory ($WINSTATE_HOME/state)

    Environment Variables:
        WINSTATE_STATE_DIR: Override state directory location
    """
    return _resolve_dir(get_home_dir() / "state", "WINSTATE_STATE_DIR")


def get_runs_dir() -> Path:
    """Get run-state record directory.

    Returns:
        Path to run records ($WINSTATE_HOME/state/runs)
    """
    runs_dir = get_state_dir() / "runs"
    runs_dir.mkdir(parents=True, exist_ok=True)
    return runs_dir


def get_events_dir() -> Path:
    """Get event stream directory.

    Returns:
        Path to event files ($WINSTATE_HOME/state/events)
    """
    events_dir = get_state_dir() / "events"
    events_dir.mkdir(parents=True, exist_ok=True)
    return events_dir


def get_log_dir() -> Path:
    """Get log directory.

    Returns:
        Path to log directory ($WINSTATE_HOME/logs)

    Environment Variables:
        WINSTATE_LOG_DIR: Override log directory location
    """
    return _resolve_dir(get_home_dir() / "logs", "WINSTATE_LOG_DIR")


def get_profiles_dir() -> Path:
    """Get profiles directory.

    Returns:
        Path to profiles ($WINSTATE_HOME/profiles)
    """
    return _resolve_dir(get_home_dir() / "profiles", "WINSTATE_PROFILES_DIR")
