"""Profile lookup across the three on-disk formats.

Layout within a profiles directory:
    {name}.jsonc                 bare profile (mutable)
    {name}/manifest.jsonc        folder profile (read-only)
    {name}.zip                   archive with manifest.jsonc at its root (read-only)

Lookup order for a name is bare, folder, zip.
"""

import logging
import zipfile
from pathlib import Path

from ..errors import ManifestParseError
from ..errors import ProfileNotFoundError
from ..models.manifest import ProfileFormat
from ..models.manifest import ProfileLocation

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.jsonc"
BARE_SUFFIX = ".jsonc"
ZIP_SUFFIX = ".zip"


def resolve_profile(name: str, profiles_dir: Path) -> ProfileLocation:
    """Locate a profile by name.

    Args:
        name: Profile name (no suffix)
        profiles_dir: Directory to search

    Returns:
        ProfileLocation with found=False when no format matches
    """
    profiles_dir = Path(profiles_dir)

    bare = profiles_dir / f"{name}{BARE_SUFFIX}"
    if bare.is_file():
        return ProfileLocation(name=name, found=True, format=ProfileFormat.BARE, path=bare)

    folder = profiles_dir / name / MANIFEST_FILENAME
    if folder.is_file():
        return ProfileLocation(name=name, found=True, format=ProfileFormat.FOLDER, path=folder.parent)

    archive = profiles_dir / f"{name}{ZIP_SUFFIX}"
    if archive.is_file():
        return ProfileLocation(name=name, found=True, format=ProfileFormat.ZIP, path=archive)

    logger.debug(f"Profile '{name}' not found in {profiles_dir}")
    return ProfileLocation(name=name, found=False)


def classify_path(path: Path) -> ProfileLocation:
    """Build a ProfileLocation for an explicit manifest path.

    Raises:
        ProfileNotFoundError: If nothing exists at path
    """
    path = Path(path)

    if path.is_dir():
        if not (path / MANIFEST_FILENAME).is_file():
            raise ProfileNotFoundError(f"No {MANIFEST_FILENAME} in profile folder: {path}")
        return ProfileLocation(name=path.name, found=True, format=ProfileFormat.FOLDER, path=path)

    if not path.is_file():
        raise ProfileNotFoundError(f"Manifest not found: {path}")

    if path.suffix.lower() == ZIP_SUFFIX:
        return ProfileLocation(name=path.stem, found=True, format=ProfileFormat.ZIP, path=path)

    if path.name == MANIFEST_FILENAME:
        return ProfileLocation(name=path.parent.name, found=True, format=ProfileFormat.FOLDER, path=path.parent)

    return ProfileLocation(name=path.stem, found=True, format=ProfileFormat.BARE, path=path)


def manifest_file(location: ProfileLocation) -> Path:
    """Path whose bytes identify the manifest (the archive itself for zip profiles)."""
    if location.format == ProfileFormat.FOLDER:
        return location.path / MANIFEST_FILENAME
    return location.path


def asset_root(location: ProfileLocation) -> Path:
    """Directory restore ``source`` paths are relative to."""
    if location.format == ProfileFormat.FOLDER:
        return location.path
    if location.format == ProfileFormat.ZIP:
        return location.path.parent / location.path.stem
    return location.path.parent


def read_manifest_text(location: ProfileLocation) -> str:
    """Read manifest text for any profile format.

    Raises:
        ManifestParseError: If the file or archive member cannot be read
    """
    try:
        if location.format == ProfileFormat.ZIP:
            with zipfile.ZipFile(location.path) as archive:
                return archive.read(MANIFEST_FILENAME).decode("utf-8")
        return manifest_file(location).read_text(encoding="utf-8")
    except KeyError:
        raise ManifestParseError(f"Archive {location.path} has no {MANIFEST_FILENAME}")
    except zipfile.BadZipFile as e:
        raise ManifestParseError(f"Invalid profile archive {location.path}: {e}")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"Failed to read manifest {location.path}: {e}")


def locate_profile(target: str | Path, profiles_dir: Path) -> ProfileLocation:
    """Locate a profile given either a path or a bare name.

    Values that look like paths (a Path, a directory component, or a
    .jsonc/.zip suffix) are classified directly; anything else is looked up
    by name in profiles_dir.

    Raises:
        ProfileNotFoundError: If nothing matches
    """
    candidate = Path(target)
    if isinstance(target, Path) or candidate.parent != Path(".") or candidate.suffix in (BARE_SUFFIX, ZIP_SUFFIX):
        return classify_path(candidate)

    location = resolve_profile(str(target), profiles_dir)
    if not location.found:
        raise ProfileNotFoundError(f"Profile '{target}' not found in {profiles_dir}")
    return location
