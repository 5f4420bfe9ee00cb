"""Manifest overlay model.

Public Interface:
    - resolve_profile: Locate a profile by name across bare/folder/zip formats
    - locate_profile: Locate a profile by name or path
    - read_raw: Parse one profile's local fields (mutation view)
    - read_resolved: Merge the include chain and apply exclusions (read view)
    - add_apps / add_exclusions / add_exclude_configs / new_overlay: Bare-profile mutations
"""

from .loader import ManifestResolver
from .loader import read_raw
from .loader import read_resolved
from .mutations import add_apps
from .mutations import add_exclude_configs
from .mutations import add_exclusions
from .mutations import new_overlay
from .profiles import locate_profile
from .profiles import resolve_profile

__all__ = [
    "ManifestResolver",
    "add_apps",
    "add_exclude_configs",
    "add_exclusions",
    "locate_profile",
    "new_overlay",
    "read_raw",
    "read_resolved",
    "resolve_profile",
]
