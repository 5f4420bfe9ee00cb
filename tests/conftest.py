"""
Shared pytest fixtures for the winstate test suite.

Provides fixtures for:
- Temporary storage directories (isolated WINSTATE_HOME)
- A fake host probe and a static package driver
- Profile writers for bare, folder and zip profiles
- A run context wired to the fakes
"""

import io
import json
import tempfile
import zipfile
from collections.abc import Callable
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from tests.fakes import FakeProbe
from winstate.config.settings import WinstateSettings
from winstate.context import RunContext
from winstate.drivers.base import StaticDriver

STORAGE_OVERRIDES = (
    "WINSTATE_CONFIG_DIR",
    "WINSTATE_STATE_DIR",
    "WINSTATE_LOG_DIR",
    "WINSTATE_PROFILES_DIR",
    "WINSTATE_EVENTS_ENABLED",
    "WINSTATE_DRIVER",
    "WINSTATE_PLATFORM",
    "WINSTATE_LOG_LEVEL",
)


@pytest.fixture
def temp_storage_dir() -> Generator[Path, None, None]:
    """Create temporary storage directory for tests.

    Automatically cleaned up after test completes.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def mock_storage_env(temp_storage_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point WINSTATE_HOME at a temp directory and clear per-directory overrides.

    Example:
        >>> def test_with_isolated_storage(mock_storage_env):
        ...     from winstate.storage.paths import get_home_dir
        ...     assert get_home_dir() == mock_storage_env
    """
    monkeypatch.setenv("WINSTATE_HOME", str(temp_storage_dir))
    for name in STORAGE_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(temp_storage_dir)
    return temp_storage_dir


@pytest.fixture
def profiles_dir(mock_storage_env: Path) -> Path:
    directory = mock_storage_env / "profiles"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


@pytest.fixture
def write_profile(profiles_dir: Path) -> Callable[..., Path]:
    """Write a profile and return the path a caller would pass to operations.

    Example:
        >>> path = write_profile("base", {"apps": []})                 # bare
        >>> path = write_profile("team", {"apps": []}, fmt="folder")   # folder
        >>> path = write_profile("corp", {"apps": []}, fmt="zip")      # zip
    """

    def _write(
        name: str,
        data: dict[str, Any] | str,
        fmt: str = "bare",
        directory: Path | None = None,
    ) -> Path:
        directory = directory or profiles_dir
        directory.mkdir(parents=True, exist_ok=True)
        text = data if isinstance(data, str) else json.dumps(data, indent=2)

        if fmt == "bare":
            path = directory / f"{name}.jsonc"
            path.write_text(text, encoding="utf-8")
            return path
        if fmt == "folder":
            folder = directory / name
            folder.mkdir(parents=True, exist_ok=True)
            (folder / "manifest.jsonc").write_text(text, encoding="utf-8")
            return folder
        if fmt == "zip":
            path = directory / f"{name}.zip"
            with zipfile.ZipFile(path, "w") as archive:
                archive.writestr("manifest.jsonc", text)
            return path
        raise ValueError(f"Unknown profile format: {fmt}")

    return _write


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def static_driver() -> StaticDriver:
    return StaticDriver(["Git.Git", "Microsoft.PowerShell", "Python.Python.3"], name="winget")


@pytest.fixture
def settings(profiles_dir: Path) -> WinstateSettings:
    return WinstateSettings(profiles_dir=str(profiles_dir))


@pytest.fixture
def event_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def run_context(
    settings: WinstateSettings,
    fake_probe: FakeProbe,
    static_driver: StaticDriver,
    event_stream: io.StringIO,
) -> RunContext:
    """Run context with events enabled, writing into event_stream."""
    return RunContext.from_settings(
        settings,
        events_enabled=True,
        driver=static_driver,
        probe=fake_probe,
        event_stream=event_stream,
    )
