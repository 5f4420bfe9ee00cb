"""Storage module for winstate.

Public Interface:
    - get_home_dir: Get WINSTATE_HOME
    - get_config_dir: Get config directory
    - get_state_dir: Get state directory (run records)
    - get_runs_dir: Get run-state record directory
    - get_events_dir: Get event stream directory
    - get_log_dir: Get log directory
    - get_profiles_dir: Get profiles directory
"""

from .paths import get_config_dir
from .paths import get_events_dir
from .paths import get_home_dir
from .paths import get_log_dir
from .paths import get_profiles_dir
from .paths import get_runs_dir
from .paths import get_state_dir

__all__ = [
    "get_home_dir",
    "get_config_dir",
    "get_state_dir",
    "get_runs_dir",
    "get_events_dir",
    "get_log_dir",
    "get_profiles_dir",
]
