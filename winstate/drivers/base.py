"""Package driver capability."""

from collections.abc import Iterable
from typing import Protocol
from typing import runtime_checkable

from ..errors import DriverError
from ..probes import HostProbe


@runtime_checkable
class PackageDriver(Protocol):
    """Installed-package query capability.

    Implementations return their full installed-id listing in one call;
    operations query it once per run.
    """

    name: str

    def get_installed_package_ids(self) -> list[str]: ...


class StaticDriver:
    """Driver answering from a fixed id list (offline runs and tests)."""

    def __init__(self, installed_ids: Iterable[str], name: str = "static") -> None:
        self.name = name
        self._installed_ids = list(installed_ids)
        self.calls = 0

    def get_installed_package_ids(self) -> list[str]:
        self.calls += 1
        return list(self._installed_ids)


def get_driver(name: str, probe: HostProbe | None = None) -> PackageDriver:
    """Build a driver by configured name.

    Raises:
        DriverError: If no driver has that name
    """
    from .winget import WingetDriver

    if name == WingetDriver.name:
        return WingetDriver(probe or HostProbe())
    raise DriverError(f"Unknown package driver: {name}")
