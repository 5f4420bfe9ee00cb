"""Live-system probes: executable search path, subprocesses and the registry.

Every operation reaches the host through a HostProbe so tests can substitute
a fake. External commands are always bounded by a timeout.
"""

import logging
import os
import re
import shutil
import subprocess
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

if sys.platform == "win32":
    import winreg
else:
    winreg = None

logger = logging.getLogger(__name__)

HIVES = {
    "HKLM": "HKEY_LOCAL_MACHINE",
    "HKEY_LOCAL_MACHINE": "HKEY_LOCAL_MACHINE",
    "HKCU": "HKEY_CURRENT_USER",
    "HKEY_CURRENT_USER": "HKEY_CURRENT_USER",
    "HKCR": "HKEY_CLASSES_ROOT",
    "HKEY_CLASSES_ROOT": "HKEY_CLASSES_ROOT",
    "HKU": "HKEY_USERS",
    "HKEY_USERS": "HKEY_USERS",
}

UNINSTALL_VALUES = ("DisplayName", "DisplayVersion", "Publisher", "InstallLocation")


_PERCENT_VAR = re.compile(r"%([A-Za-z_][A-Za-z0-9_()]*)%")


def expand_path(value: str) -> Path:
    """Expand %VAR%, $VAR / ${VAR} and ~ placeholders against the current environment.

    Unknown variables are left in place so the resulting path simply does not exist.
    """

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        for key, env_value in os.environ.items():
            if key.upper() == name.upper():
                return env_value
        return match.group(0)

    expanded = _PERCENT_VAR.sub(_replace, value)
    expanded = os.path.expandvars(expanded)
    return Path(os.path.expanduser(expanded))


def path_exists(path: Path) -> bool:
    """Like Path.exists, but only a missing path is False.

    Raises:
        OSError: For any other failure (permission denied, name too long, ...)
    """
    try:
        path.stat()
    except (FileNotFoundError, NotADirectoryError):
        return False
    return True


@dataclass
class CommandOutput:
    returncode: int
    stdout: str
    stderr: str


def split_registry_path(path: str) -> tuple[str, str]:
    """Split "HKLM\\Software\\X" into ("HKEY_LOCAL_MACHINE", "Software\\X").

    Raises:
        ValueError: If the hive prefix is not recognized
    """
    normalized = path.replace("/", "\\").strip("\\")
    hive, _, subkey = normalized.partition("\\")
    hive = hive.rstrip(":").upper()
    if hive not in HIVES:
        raise ValueError(f"Unknown registry hive: {hive}")
    return HIVES[hive], subkey


class HostProbe:
    """Probes against the running host."""

    def __init__(self, timeout: float = 15.0) -> None:
        self.timeout = timeout

    @property
    def registry_available(self) -> bool:
        return winreg is not None

    def which(self, command: str) -> str | None:
        return shutil.which(command)

    def run(self, args: list[str]) -> CommandOutput | None:
        """Run a command with the probe timeout.

        Returns:
            CommandOutput, or None when the command is missing or timed out
        """
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError:
            logger.debug(f"Command not found: {args[0]}")
            return None
        except subprocess.TimeoutExpired:
            logger.warning(f"Command timed out after {self.timeout}s: {' '.join(args)}")
            return None
        except OSError as e:
            logger.warning(f"Failed to run {' '.join(args)}: {e}")
            return None
        return CommandOutput(completed.returncode, completed.stdout or "", completed.stderr or "")

    def version(self, executable: str) -> str:
        """First non-empty line of ``<executable> --version``; empty when unavailable."""
        output = self.run([executable, "--version"])
        if output is None or output.returncode != 0:
            return ""
        for line in (output.stdout or output.stderr).splitlines():
            if line.strip():
                return line.strip()
        return ""

    def _open_key(self, path: str):
        hive, subkey = split_registry_path(path)
        return winreg.OpenKey(getattr(winreg, hive), subkey)

    def registry_key_exists(self, path: str, name: str | None = None) -> bool:
        if winreg is None:
            return False
        try:
            with self._open_key(path) as key:
                if name is not None:
                    winreg.QueryValueEx(key, name)
            return True
        except OSError:
            return False

    def uninstall_entries(self, root: str) -> Iterator[dict[str, str]]:
        """Yield the uninstall values of every subkey under root.

        Yields nothing on hosts without a registry or when root is missing.
        """
        if winreg is None:
            return
        try:
            root_key = self._open_key(root)
        except OSError:
            logger.debug(f"Uninstall root not present: {root}")
            return

        with root_key:
            index = 0
            while True:
                try:
                    subkey_name = winreg.EnumKey(root_key, index)
                except OSError:
                    break
                index += 1

                entry: dict[str, str] = {}
                try:
                    with winreg.OpenKey(root_key, subkey_name) as subkey:
                        for value_name in UNINSTALL_VALUES:
                            try:
                                value, _ = winreg.QueryValueEx(subkey, value_name)
                            except OSError:
                                continue
                            if value not in (None, ""):
                                entry[value_name] = str(value).strip()
                except OSError as e:
                    logger.debug(f"Skipping unreadable uninstall key {root}\\{subkey_name}: {e}")
                    continue
                yield entry
