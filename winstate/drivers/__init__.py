"""Package drivers.

Public Interface:
    - PackageDriver: Installed-package query capability
    - WingetDriver: Windows Package Manager integration
    - StaticDriver: Fixed installed-id list
    - get_driver: Build a driver by name
"""

from .base import PackageDriver
from .base import StaticDriver
from .base import get_driver
from .winget import WingetDriver
from .winget import parse_winget_list

__all__ = [
    "PackageDriver",
    "StaticDriver",
    "WingetDriver",
    "get_driver",
    "parse_winget_list",
]
