"""Reading manifests: raw view and resolved (inherited, filtered) view.

Resolution algorithm for a profile P:
1. Read P's raw manifest.
2. Resolve each name in P.includes (file order) to its resolved view,
   rejecting include chains that revisit a profile on the current stack.
3. Merge apps base-first then local; a later app is kept only if no earlier
   app shares its driver-native id (first occurrence wins).
4. Drop apps matching the transitively merged ``exclude`` list.
5. Drop config modules (and their restore entries) matching the transitively
   merged ``excludeConfigs`` list.
6. Concatenate verify/restore lists base-first without de-duplication.

Resolution is read-only: nothing is ever written back to disk.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from ..errors import CyclicIncludeError
from ..errors import ManifestParseError
from ..errors import ProfileNotFoundError
from ..models.manifest import AppEntry
from ..models.manifest import ProfileLocation
from ..models.manifest import RawManifest
from ..models.manifest import ResolvedManifest
from . import jsonc
from .profiles import asset_root
from .profiles import classify_path
from .profiles import manifest_file
from .profiles import read_manifest_text
from .profiles import resolve_profile

logger = logging.getLogger(__name__)


def _parse_raw(location: ProfileLocation) -> RawManifest:
    text = read_manifest_text(location)

    try:
        data = jsonc.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestParseError(f"Malformed manifest {location.path}: line {e.lineno} column {e.colno}: {e.msg}")

    if not isinstance(data, dict):
        raise ManifestParseError(f"Malformed manifest {location.path}: top level must be an object")

    try:
        raw = RawManifest.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ManifestParseError(f"Invalid manifest {location.path}: {problems}")

    raw.source_path = location.path
    raw.format = location.format
    return raw


def read_raw(path: str | Path) -> RawManifest:
    """Parse only the fields physically present in one profile.

    Args:
        path: Bare file, folder profile (or its manifest.jsonc) or zip archive

    Returns:
        RawManifest with absent fields left as None

    Raises:
        ProfileNotFoundError: If path does not exist
        ManifestParseError: If the content is malformed
    """
    return _parse_raw(classify_path(Path(path)))


def read_resolved(
    path: str | Path,
    platform: str = "windows",
    profiles_dir: Path | None = None,
) -> ResolvedManifest:
    """Resolve a profile with its whole include chain.

    Args:
        path: Manifest path in any profile format
        platform: Key looked up in each app's refs
        profiles_dir: Fallback directory for include lookup

    Raises:
        ProfileNotFoundError: If the manifest or an included base is missing
        ManifestParseError: If any manifest in the chain is malformed
        CyclicIncludeError: If the include chain loops
    """
    resolver = ManifestResolver(platform=platform, profiles_dir=profiles_dir)
    return resolver.resolve(classify_path(Path(path)))


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        key = value.casefold()
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result


class ManifestResolver:
    """Transitive include resolution for one platform."""

    def __init__(self, platform: str = "windows", profiles_dir: Path | None = None) -> None:
        self.platform = platform
        self.profiles_dir = Path(profiles_dir) if profiles_dir is not None else None

    def resolve(self, location: ProfileLocation) -> ResolvedManifest:
        resolved = self._resolve(location, stack=[])
        logger.info(
            f"Resolved profile '{resolved.name}': {resolved.net_app_count} apps "
            f"({resolved.base_app_count} from bases), {len(resolved.verify)} checks, "
            f"{len(resolved.restore)} restore entries"
        )
        return resolved

    def _find_base(self, name: str, including: ProfileLocation) -> ProfileLocation:
        search_dirs = [including.path.parent]
        if self.profiles_dir is not None and self.profiles_dir not in search_dirs:
            search_dirs.append(self.profiles_dir)

        for directory in search_dirs:
            location = resolve_profile(name, directory)
            if location.found:
                return location

        raise ProfileNotFoundError(
            f"Profile '{including.name}' includes '{name}', which was not found in "
            f"{', '.join(str(d) for d in search_dirs)}"
        )

    def _resolve(self, location: ProfileLocation, stack: list[str]) -> ResolvedManifest:
        key = location.name.casefold()
        if key in (entry.casefold() for entry in stack):
            raise CyclicIncludeError(stack + [location.name])
        stack = stack + [location.name]

        raw = _parse_raw(location)
        local_apps = raw.local("apps")

        bases = [self._resolve(self._find_base(name, location), stack) for name in raw.local("includes")]

        apps: list[AppEntry] = []
        seen_apps: set[str] = set()
        for app in [app for base in bases for app in base.apps] + local_apps:
            identity = app.identity(self.platform)
            if identity in seen_apps:
                logger.debug(f"Skipping duplicate app '{app.id}' ({identity}) in {location.name}")
                continue
            seen_apps.add(identity)
            apps.append(app)

        exclude = _dedupe([value for base in bases for value in base.exclude] + raw.local("exclude"))
        exclude_configs = _dedupe(
            [value for base in bases for value in base.exclude_configs] + raw.local("exclude_configs")
        )

        excluded = {value.casefold() for value in exclude}
        kept_apps = []
        for app in apps:
            driver_id = app.driver_id(self.platform)
            if app.id.casefold() in excluded or (driver_id and driver_id.casefold() in excluded):
                logger.debug(f"Excluding app '{app.id}' from {location.name}")
                continue
            kept_apps.append(app)

        excluded_configs = {value.casefold() for value in exclude_configs}
        config_modules = [
            module
            for module in _dedupe([m for base in bases for m in base.config_modules] + raw.local("config_modules"))
            if module.casefold() not in excluded_configs
        ]
        restore = [
            entry
            for entry in [e for base in bases for e in base.restore] + raw.local("restore")
            if not (entry.module and entry.module.casefold() in excluded_configs)
        ]

        chain: list[str] = []
        for name in [location.name] + [n for base in bases for n in base.include_chain]:
            if name not in chain:
                chain.append(name)

        return ResolvedManifest(
            version=raw.version,
            name=raw.name or location.name,
            apps=kept_apps,
            verify=[check for base in bases for check in base.verify] + raw.local("verify"),
            restore=restore,
            config_modules=config_modules,
            includes=raw.local("includes"),
            exclude=exclude,
            exclude_configs=exclude_configs,
            include_chain=chain,
            local_app_count=len(local_apps),
            source_path=manifest_file(location),
            asset_root=asset_root(location),
        )
