"""Local-field mutations of bare profiles.

Every mutation:
- requires the target to be a bare profile (folder and zip profiles are read-only)
- edits the raw manifest only, never a resolved view
- is idempotent per element and returns the number of genuinely new elements
- persists with a read-modify-write of the file

Two processes mutating the same file concurrently are not synchronized; the
later writer wins.
"""

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ..errors import ManifestParseError
from ..errors import ProfileNotMutableError
from ..models.manifest import AppEntry
from ..models.manifest import ProfileFormat
from ..models.manifest import ProfileLocation
from . import jsonc
from .loader import read_raw
from .profiles import BARE_SUFFIX
from .profiles import locate_profile
from .profiles import resolve_profile

logger = logging.getLogger(__name__)

MANIFEST_VERSION = 1


def _require_bare(location: ProfileLocation) -> Path:
    if location.format != ProfileFormat.BARE:
        raise ProfileNotMutableError(
            f"Profile '{location.name}' is a {location.format.value} profile and is read-only; "
            f"only bare profiles can be modified"
        )
    return location.path


def _load_document(path: Path) -> dict[str, Any]:
    # Validate through the raw model first so malformed files are never rewritten
    read_raw(path)
    try:
        return jsonc.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ManifestParseError(f"Failed to read manifest {path}: {e}")


def _write_document(path: Path, document: dict[str, Any]) -> None:
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(jsonc.dumps(document), encoding="utf-8")
    tmp_path.replace(path)


def _add_strings(target: str | Path, profiles_dir: Path, field: str, values: Iterable[str]) -> int:
    path = _require_bare(locate_profile(target, profiles_dir))
    document = _load_document(path)

    current = list(document.get(field) or [])
    present = {str(value).casefold() for value in current}

    added = 0
    for value in values:
        key = value.casefold()
        if key in present:
            continue
        present.add(key)
        current.append(value)
        added += 1

    if added:
        document[field] = current
        _write_document(path, document)
        logger.info(f"Added {added} value(s) to '{field}' of {path}")
    else:
        logger.debug(f"No new values for '{field}' of {path}")
    return added


def app_id_from_driver_id(driver_id: str) -> str:
    """Logical app id derived from a driver-native id ("Git.Git" -> "git-git")."""
    return re.sub(r"[^a-z0-9]+", "-", driver_id.lower()).strip("-")


def add_apps(
    target: str | Path,
    apps: Iterable[AppEntry | str],
    profiles_dir: Path,
    platform: str = "windows",
) -> int:
    """Append apps to a bare profile's local ``apps`` list.

    Args:
        target: Profile name or path
        apps: AppEntry objects, or driver-native ids for the platform
        profiles_dir: Directory names are resolved in
        platform: Platform key used for duplicate detection

    Returns:
        Number of apps actually added

    Raises:
        ProfileNotFoundError: If the target does not exist
        ProfileNotMutableError: If the target is not a bare profile
    """
    path = _require_bare(locate_profile(target, profiles_dir))
    document = _load_document(path)

    current = list(document.get("apps") or [])
    present = {AppEntry.model_validate(entry).identity(platform) for entry in current}

    added = 0
    for app in apps:
        if isinstance(app, str):
            app = AppEntry(id=app_id_from_driver_id(app), refs={platform: app})
        identity = app.identity(platform)
        if identity in present:
            continue
        present.add(identity)
        current.append(app.model_dump(by_alias=True))
        added += 1

    if added:
        document["apps"] = current
        _write_document(path, document)
        logger.info(f"Added {added} app(s) to {path}")
    return added


def add_exclusions(target: str | Path, app_ids: Iterable[str], profiles_dir: Path) -> int:
    """Add app identifiers to a bare profile's local ``exclude`` list."""
    return _add_strings(target, profiles_dir, "exclude", app_ids)


def add_exclude_configs(target: str | Path, module_ids: Iterable[str], profiles_dir: Path) -> int:
    """Add config module identifiers to a bare profile's local ``excludeConfigs`` list."""
    return _add_strings(target, profiles_dir, "excludeConfigs", module_ids)


def new_overlay(name: str, includes: Iterable[str], profiles_dir: Path) -> int:
    """Create a bare overlay profile that includes the given bases.

    An existing bare profile of the same name gains any missing includes
    instead; an existing folder or zip profile cannot be overlaid in place.

    Returns:
        Number of includes added (all of them for a new profile)

    Raises:
        ProfileNotMutableError: If a read-only profile already uses the name
    """
    profiles_dir = Path(profiles_dir)
    includes = list(includes)
    location = resolve_profile(name, profiles_dir)

    if location.found:
        _require_bare(location)
        return _add_strings(location.path, profiles_dir, "includes", includes)

    unique: list[str] = []
    for include in includes:
        if include.casefold() not in {u.casefold() for u in unique}:
            unique.append(include)

    path = profiles_dir / f"{name}{BARE_SUFFIX}"
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {
        "version": MANIFEST_VERSION,
        "name": name,
        "includes": unique,
        "apps": [],
        "exclude": [],
    }
    _write_document(path, document)
    logger.info(f"Created overlay {path} including {', '.join(unique) or 'nothing'}")
    return len(unique)
