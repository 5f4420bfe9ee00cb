"""Manifest models: raw and resolved views of a profile.

A profile file holds a *raw* manifest: only the fields physically present in
that file. Reconciliation works on the *resolved* manifest, produced by merging
the raw view with every included base and applying exclusions. Mutations only
ever touch the raw view.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel

from .base import CamelCaseModel


class ProfileFormat(str, Enum):
    """Physical layout of a profile.

    Only BARE profiles are mutable; FOLDER and ZIP profiles are read-only.
    """

    BARE = "bare"
    FOLDER = "folder"
    ZIP = "zip"


@dataclass
class ProfileLocation:
    """Result of looking a profile up by name."""

    name: str
    found: bool
    format: ProfileFormat | None = None
    path: Path | None = None

    @property
    def mutable(self) -> bool:
        return self.found and self.format == ProfileFormat.BARE


class AppEntry(CamelCaseModel):
    """Desired application.

    Example:
        >>> app = AppEntry(id="git", refs={"windows": "Git.Git"})
        >>> assert app.driver_id("windows") == "Git.Git"
    """

    id: str = Field(description="Logical application identifier")
    refs: dict[str, str] = Field(default_factory=dict, description="Platform name to driver-native identifier")

    def driver_id(self, platform: str) -> str | None:
        """Driver-native identifier for the platform, if declared."""
        return self.refs.get(platform) or None

    def identity(self, platform: str) -> str:
        """Case-folded key two entries are compared by when merging."""
        return (self.driver_id(platform) or self.id).casefold()


class VerifyEntry(CamelCaseModel):
    """Explicit verification check.

    The ``type`` tag is validated against the closed verifier table when the
    check is built, so an unknown tag surfaces as a failed check rather than a
    load failure of the whole manifest.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    type: str = Field(description="file-exists | command-exists | registry-key-exists")
    path: str | None = Field(default=None, description="File path or registry key path")
    command: str | None = Field(default=None, description="Command name resolved on PATH")
    name: str | None = Field(default=None, description="Registry value name")
    description: str | None = Field(default=None, description="Human readable label")

    @property
    def label(self) -> str:
        if self.description:
            return self.description
        target = self.command or self.path or ""
        if self.name:
            target = f"{target}\\{self.name}"
        return f"{self.type}:{target}"


class RestoreEntry(CamelCaseModel):
    """Config file declaration.

    ``source`` is relative to the profile's asset root; ``target`` is a system
    path that may contain %VAR%, $VAR and ~ placeholders.
    """

    source: str = Field(description="Path relative to the profile asset root")
    target: str = Field(description="System path, placeholders expanded at use time")
    module: str | None = Field(default=None, description="Config module this entry belongs to")


class RawManifest(CamelCaseModel):
    """Fields physically present in one profile file.

    ``None`` means the field is absent from the file, which is distinct from
    an explicitly empty list.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    version: int | str | None = None
    name: str | None = None
    apps: list[AppEntry] | None = None
    verify: list[VerifyEntry] | None = None
    restore: list[RestoreEntry] | None = None
    config_modules: list[str] | None = None
    includes: list[str] | None = None
    exclude: list[str] | None = None
    exclude_configs: list[str] | None = None

    source_path: Path | None = Field(default=None, exclude=True)
    format: ProfileFormat = Field(default=ProfileFormat.BARE, exclude=True)

    def local(self, field_name: str) -> list:
        """Local list value, treating an absent field as empty."""
        value = getattr(self, field_name)
        return list(value) if value is not None else []


class ResolvedManifest(CamelCaseModel):
    """Manifest after transitive include merge and exclusion filtering."""

    version: int | str | None = None
    name: str
    apps: list[AppEntry] = Field(default_factory=list)
    verify: list[VerifyEntry] = Field(default_factory=list)
    restore: list[RestoreEntry] = Field(default_factory=list)
    config_modules: list[str] = Field(default_factory=list)
    includes: list[str] = Field(default_factory=list, description="Direct includes of this profile")
    exclude: list[str] = Field(default_factory=list, description="Transitively merged app exclusions")
    exclude_configs: list[str] = Field(default_factory=list, description="Transitively merged config exclusions")
    include_chain: list[str] = Field(default_factory=list, description="Every profile merged, depth-first")
    local_app_count: int = 0
    source_path: Path
    asset_root: Path

    @property
    def net_app_count(self) -> int:
        return len(self.apps)

    @property
    def base_app_count(self) -> int:
        # Derived; local apps that were excluded can push the difference below zero
        return max(0, self.net_app_count - self.local_app_count)
