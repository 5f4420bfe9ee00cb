"""Settings models for winstate.

Contract:
- Inputs: Environment variables, YAML files
- Outputs: Validated settings objects
- Side Effects: None (read-only)
"""

from pathlib import Path

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from ..storage.paths import get_profiles_dir


class WinstateSettings(BaseSettings):
    """Configuration for winstate operations.

    Attributes:
        log_level: Logging level (default: info)
        profiles_dir: Directory holding profiles (default: $WINSTATE_HOME/profiles)
        platform: Key looked up in an app's refs (default: windows)
        driver: Package driver name (default: winget)
        events_enabled: Emit the NDJSON event stream (default: False)
        probe_timeout_seconds: Upper bound for every external command call
        include_unmatched_registry: Report registry entries no pattern recognizes
        sensitive_patterns: Extra glob patterns flagged by the export policy

    Example:
        >>> settings = WinstateSettings()
        >>> assert settings.platform == "windows"
        >>> assert settings.driver == "winget"
    """

    model_config = SettingsConfigDict(
        env_prefix="WINSTATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "info"
    profiles_dir: str = ""
    platform: str = "windows"
    driver: str = "winget"
    events_enabled: bool = False
    probe_timeout_seconds: float = Field(default=15.0, gt=0)
    include_unmatched_registry: bool = False
    sensitive_patterns: list[str] = Field(default_factory=list)

    @field_validator("profiles_dir")
    @classmethod
    def expand_and_resolve_path(cls, v: str) -> str:
        """Expand ~ and resolve to absolute path (empty keeps the default)."""
        if not v:
            return v
        return str(Path(v).expanduser().resolve())

    @property
    def profiles_path(self) -> Path:
        """Directory profiles are looked up in."""
        if self.profiles_dir:
            return Path(self.profiles_dir)
        return get_profiles_dir()
