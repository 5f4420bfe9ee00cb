"""Verifier predicates and the closed dispatch table.

Each verifier is a pure predicate over the host probe returning a CheckResult.
The verify ``type`` tag is mapped to a VerifyKind when the check is built, so
an unknown tag is a typed construction error rather than a silent default.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..errors import UnknownVerifyTypeError
from ..models.manifest import VerifyEntry
from ..probes import HostProbe
from ..probes import expand_path
from ..probes import path_exists

logger = logging.getLogger(__name__)


class VerifyKind(str, Enum):
    FILE_EXISTS = "file-exists"
    COMMAND_EXISTS = "command-exists"
    REGISTRY_KEY_EXISTS = "registry-key-exists"


@dataclass
class CheckResult:
    success: bool
    message: str


def file_exists(probe: HostProbe, path: str) -> CheckResult:
    expanded = expand_path(path)
    try:
        found = path_exists(expanded)
    except OSError as e:
        return CheckResult(False, f"cannot check {expanded}: {e}")
    if found:
        return CheckResult(True, f"found {expanded}")
    return CheckResult(False, f"file not found: {expanded}")


def command_exists(probe: HostProbe, command: str) -> CheckResult:
    resolved = probe.which(command)
    if resolved:
        return CheckResult(True, f"{command} resolves to {resolved}")
    return CheckResult(False, f"command not found on PATH: {command}")


def registry_key_exists(probe: HostProbe, path: str, name: str | None = None) -> CheckResult:
    if not probe.registry_available:
        return CheckResult(False, "registry not available on this platform")

    target = f"{path}\\{name}" if name else path
    try:
        exists = probe.registry_key_exists(path, name)
    except ValueError as e:
        return CheckResult(False, str(e))

    if exists:
        return CheckResult(True, f"registry entry present: {target}")
    return CheckResult(False, f"registry entry not found: {target}")


# kind -> (required parameters, predicate)
VERIFIERS: dict[VerifyKind, tuple[tuple[str, ...], Callable[..., CheckResult]]] = {
    VerifyKind.FILE_EXISTS: (("path",), lambda probe, entry: file_exists(probe, entry.path)),
    VerifyKind.COMMAND_EXISTS: (("command",), lambda probe, entry: command_exists(probe, entry.command)),
    VerifyKind.REGISTRY_KEY_EXISTS: (
        ("path",),
        lambda probe, entry: registry_key_exists(probe, entry.path, entry.name),
    ),
}


@dataclass
class VerifyCheck:
    """A verify entry bound to its verifier."""

    kind: VerifyKind
    entry: VerifyEntry

    def run(self, probe: HostProbe) -> CheckResult:
        _, predicate = VERIFIERS[self.kind]
        return predicate(probe, self.entry)


def build_check(entry: VerifyEntry) -> VerifyCheck:
    """Bind a verify entry to its verifier.

    Raises:
        UnknownVerifyTypeError: If the type tag is not in the verifier table
        ValueError: If a required parameter is missing
    """
    try:
        kind = VerifyKind(entry.type)
    except ValueError:
        raise UnknownVerifyTypeError(entry.type)

    required, _ = VERIFIERS[kind]
    missing = [param for param in required if not getattr(entry, param)]
    if missing:
        raise ValueError(f"{kind.value} check is missing parameter(s): {', '.join(missing)}")

    return VerifyCheck(kind=kind, entry=entry)
