"""Discovery models."""

from enum import Enum

from pydantic import Field

from .base import CamelCaseModel


class DiscoveryMethod(str, Enum):
    """How a piece of software was detected."""

    PATH = "path"
    REGISTRY = "registry"


class DiscoveryEntry(CamelCaseModel):
    """Software detected on the host, with its ownership verdict."""

    name: str = Field(description="Short canonical name")
    method: DiscoveryMethod = Field(description="Detector that produced this entry")
    path: str | None = Field(default=None, description="Resolved executable path (path method)")
    version: str | None = Field(default=None, description="Reported version string, empty when unknown")
    display_name: str | None = Field(default=None, description="Uninstall DisplayName (registry method)")
    display_version: str | None = Field(default=None, description="Uninstall DisplayVersion")
    publisher: str | None = Field(default=None, description="Uninstall Publisher")
    install_location: str | None = Field(default=None, description="Uninstall InstallLocation")
    suggested_driver_id: str | None = Field(default=None, description="Best-guess driver-native id")
    owned_by_driver: bool = Field(default=False, description="Matched an installed driver package")

    def sort_key(self) -> tuple[str, str, str]:
        return (self.name, self.method.value, self.path or "")
