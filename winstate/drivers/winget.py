"""Windows Package Manager (winget) driver.

``winget list`` prints a fixed-width table:

    Name             Id                 Version     Available Source
    -----------------------------------------------------------------
    Git              Git.Git            2.43.0                winget

The Id column starts at the "Id" header and ends where the "Version" header
starts.
"""

import logging
import re

from ..errors import DriverError
from ..probes import HostProbe

logger = logging.getLogger(__name__)

_ID_HEADER = re.compile(r"\bId\b")
_VERSION_HEADER = re.compile(r"\bVersion\b")


def _is_separator(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and set(stripped) == {"-"}


def parse_winget_list(output: str) -> list[str]:
    """Extract package ids from ``winget list`` output.

    Args:
        output: Raw stdout, possibly prefixed by progress spinner noise

    Returns:
        Package ids in listing order (empty when no header is found)
    """
    # progress spinners rewrite the line with carriage returns
    lines = [line.rsplit("\r", 1)[-1] for line in output.splitlines()]

    id_start = version_start = None
    body_start = 0
    for index, line in enumerate(lines):
        id_match = _ID_HEADER.search(line)
        if not id_match:
            continue
        version_match = _VERSION_HEADER.search(line, id_match.end())
        if not version_match:
            continue
        id_start, version_start = id_match.start(), version_match.start()
        body_start = index + 1
        break

    if id_start is None:
        logger.debug("No Id/Version header in winget output")
        return []

    ids = []
    for line in lines[body_start:]:
        if not line.strip() or _is_separator(line):
            continue
        package_id = line[id_start:version_start].strip()
        if package_id:
            ids.append(package_id)
    return ids


class WingetDriver:
    """Driver backed by the winget command line."""

    name = "winget"

    def __init__(self, probe: HostProbe) -> None:
        self.probe = probe

    def get_installed_package_ids(self) -> list[str]:
        """Return every installed package id.

        Raises:
            DriverError: If winget is missing, times out or fails
        """
        output = self.probe.run(["winget", "list", "--accept-source-agreements", "--disable-interactivity"])
        if output is None:
            raise DriverError("winget is not available or did not respond in time")
        if output.returncode != 0:
            raise DriverError(f"winget list exited with {output.returncode}: {output.stderr.strip()}")

        ids = parse_winget_list(output.stdout)
        logger.info(f"winget reported {len(ids)} installed packages")
        return ids
