"""Run context threaded through every operation entry point.

Holds configuration and collaborators explicitly; there is no process-wide
state such as a global "events enabled" flag.
"""

from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import TextIO

from .config.settings import WinstateSettings
from .drivers.base import PackageDriver
from .drivers.base import get_driver
from .events import EventEmitter
from .operations.runs import RunSession
from .operations.runs import RunStateStore
from .probes import HostProbe
from .storage.paths import get_events_dir
from .storage.paths import get_log_dir
from .storage.paths import get_runs_dir


@dataclass
class RunContext:
    """Configuration and collaborators for one operation.

    Example:
        >>> ctx = RunContext.from_settings(WinstateSettings(), events_enabled=True)
        >>> assert ctx.events_enabled
    """

    settings: WinstateSettings
    probe: HostProbe
    store: RunStateStore
    events_enabled: bool = False
    event_stream: TextIO | None = None
    log_dir: Path | None = None
    events_dir: Path | None = None
    driver: PackageDriver | None = field(default=None)

    @classmethod
    def from_settings(
        cls,
        settings: WinstateSettings,
        events_enabled: bool | None = None,
        driver: PackageDriver | None = None,
        probe: HostProbe | None = None,
        event_stream: TextIO | None = None,
    ) -> "RunContext":
        """Build a context using the standard storage layout."""
        return cls(
            settings=settings,
            probe=probe or HostProbe(timeout=settings.probe_timeout_seconds),
            store=RunStateStore(get_runs_dir()),
            events_enabled=settings.events_enabled if events_enabled is None else events_enabled,
            event_stream=event_stream,
            log_dir=get_log_dir(),
            events_dir=get_events_dir(),
            driver=driver,
        )

    @property
    def platform(self) -> str:
        return self.settings.platform

    @property
    def profiles_dir(self) -> Path:
        return self.settings.profiles_path

    def get_driver(self) -> PackageDriver:
        """Configured package driver, built on first use."""
        if self.driver is None:
            self.driver = get_driver(self.settings.driver, self.probe)
        return self.driver

    def start_run(self, command: str) -> RunSession:
        emitter = EventEmitter(enabled=self.events_enabled, stream=self.event_stream)
        return RunSession(
            command,
            store=self.store,
            log_dir=self.log_dir,
            events=emitter,
            events_dir=self.events_dir,
        )
