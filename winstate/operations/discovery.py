"""Discovery engine: find software installed outside the package driver.

Two detectors feed one ownership cross-check:

- PATH detector: a fixed registry of well-known commands, each mapped to a
  suggested winget id, probed with ``which`` and ``--version``.
- Registry detector: the Windows uninstall roots, matched against an ordered
  pattern table (first match wins) and de-duplicated by
  (DisplayName, DisplayVersion) across roots.

Results are sorted by (name, method, path) and written without timestamps so
the report is byte-identical across runs on an unchanged host.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import DriverError
from ..errors import ErrorCode
from ..models.discovery import DiscoveryEntry
from ..models.discovery import DiscoveryMethod
from ..models.results import DiscoveryResult
from ..models.results import DiscoverySummary
from ..models.results import ErrorDetail
from ..models.runs import ActionStatus
from ..models.runs import RunAction
from ..probes import HostProbe
from ..storage.paths import get_state_dir

if TYPE_CHECKING:
    from ..context import RunContext

logger = logging.getLogger(__name__)

REPORT_FILENAME = "discovery.json"
TEMPLATE_FILENAME = "manual-include.jsonc"

# command -> suggested winget id
PATH_TOOLS: dict[str, str] = {
    "7z": "7zip.7zip",
    "code": "Microsoft.VisualStudioCode",
    "docker": "Docker.DockerDesktop",
    "dotnet": "Microsoft.DotNet.SDK.8",
    "gh": "GitHub.cli",
    "git": "Git.Git",
    "go": "GoLang.Go",
    "java": "EclipseAdoptium.Temurin.21.JDK",
    "node": "OpenJS.NodeJS",
    "pwsh": "Microsoft.PowerShell",
    "python": "Python.Python.3.12",
    "rustup": "Rustlang.Rustup",
}

UNINSTALL_ROOTS = (
    r"HKLM\SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
    r"HKLM\SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall",
    r"HKCU\SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall",
)


@dataclass(frozen=True)
class RegistryPattern:
    """DisplayName pattern mapped to a suggested id and a short family name."""

    pattern: re.Pattern
    driver_id: str
    family: str


def _pattern(regex: str, driver_id: str, family: str) -> RegistryPattern:
    return RegistryPattern(re.compile(regex, re.IGNORECASE), driver_id, family)


# Order matters: the first matching pattern wins
REGISTRY_PATTERNS = (
    _pattern(r"^Git( version [\d.]+)?(\s|$)", "Git.Git", "git"),
    _pattern(r"^GitHub CLI\b", "GitHub.cli", "gh"),
    _pattern(r"^Node\.js\b", "OpenJS.NodeJS", "node"),
    _pattern(r"^Python 3\.\d+", "Python.Python.3.12", "python"),
    _pattern(r"^Microsoft Visual Studio Code\b", "Microsoft.VisualStudioCode", "code"),
    _pattern(r"^PowerShell 7\b", "Microsoft.PowerShell", "pwsh"),
    _pattern(r"^Docker Desktop\b", "Docker.DockerDesktop", "docker"),
    _pattern(r"^7-Zip\b", "7zip.7zip", "7zip"),
    _pattern(r"^Google Chrome\b", "Google.Chrome", "chrome"),
    _pattern(r"^Mozilla Firefox\b", "Mozilla.Firefox", "firefox"),
    _pattern(r"^Notepad\+\+", "Notepad++.Notepad++", "notepadplusplus"),
    _pattern(r"^VLC media player\b", "VideoLAN.VLC", "vlc"),
)

_SLUG_RUN = re.compile(r"[^a-z0-9]+")


def slugify(display_name: str) -> str:
    """Lower-case display name with non-alphanumeric runs collapsed to '-'."""
    return _SLUG_RUN.sub("-", display_name.lower()).strip("-")


def match_display_name(display_name: str) -> RegistryPattern | None:
    for candidate in REGISTRY_PATTERNS:
        if candidate.pattern.search(display_name):
            return candidate
    return None


def detect_path_tools(probe: HostProbe) -> list[DiscoveryEntry]:
    """One entry per well-known command that resolves on PATH."""
    entries = []
    for command, driver_id in PATH_TOOLS.items():
        resolved = probe.which(command)
        if not resolved:
            continue
        version = probe.version(resolved)
        logger.debug(f"Found {command} at {resolved} ({version or 'no version'})")
        entries.append(
            DiscoveryEntry(
                name=command,
                method=DiscoveryMethod.PATH,
                path=resolved,
                version=version,
                suggested_driver_id=driver_id,
            )
        )
    return entries


def detect_registry(probe: HostProbe, include_unmatched: bool = False) -> list[DiscoveryEntry]:
    """Entries from the uninstall roots; empty on hosts without a registry."""
    if not probe.registry_available:
        logger.debug("Registry not available on this platform; skipping uninstall scan")
        return []

    seen: set[tuple[str, str]] = set()
    entries = []
    for root in UNINSTALL_ROOTS:
        for values in probe.uninstall_entries(root):
            display_name = values.get("DisplayName")
            if not display_name:
                continue
            display_version = values.get("DisplayVersion", "")
            key = (display_name, display_version)
            if key in seen:
                continue
            seen.add(key)

            matched = match_display_name(display_name)
            if matched is None and not include_unmatched:
                continue

            entries.append(
                DiscoveryEntry(
                    name=matched.family if matched else slugify(display_name),
                    method=DiscoveryMethod.REGISTRY,
                    version=display_version,
                    display_name=display_name,
                    display_version=display_version,
                    publisher=values.get("Publisher"),
                    install_location=values.get("InstallLocation"),
                    suggested_driver_id=matched.driver_id if matched else None,
                )
            )
    return entries


def is_owned(suggested_id: str | None, installed_ids: set[str]) -> bool:
    """Permissive match of a suggested id against case-folded installed ids.

    Owned when an installed id equals the suggestion, either one is a dotted
    child of the other, or the suggestion's first two segments equal the
    installed id.
    """
    if not suggested_id:
        return False
    suggestion = suggested_id.casefold()
    two_segments = ".".join(suggestion.split(".")[:2])
    for installed in installed_ids:
        if (
            installed == suggestion
            or installed.startswith(suggestion + ".")
            or suggestion.startswith(installed + ".")
            or two_segments == installed
        ):
            return True
    return False


def mark_ownership(entries: list[DiscoveryEntry], installed_ids: list[str] | set[str]) -> list[DiscoveryEntry]:
    """Return copies of entries with ``owned_by_driver`` computed."""
    folded = {package_id.casefold() for package_id in installed_ids}
    return [
        entry.model_copy(update={"owned_by_driver": is_owned(entry.suggested_driver_id, folded)}) for entry in entries
    ]


def sort_discoveries(entries: list[DiscoveryEntry]) -> list[DiscoveryEntry]:
    return sorted(entries, key=lambda entry: entry.sort_key())


def summarize(entries: list[DiscoveryEntry]) -> DiscoverySummary:
    owned = sum(1 for e in entries if e.owned_by_driver)
    return DiscoverySummary(
        total=len(entries),
        path=sum(1 for e in entries if e.method == DiscoveryMethod.PATH),
        registry=sum(1 for e in entries if e.method == DiscoveryMethod.REGISTRY),
        owned=owned,
        unowned=len(entries) - owned,
    )


def render_report(entries: list[DiscoveryEntry], summary: DiscoverySummary) -> str:
    """Deterministic JSON report; carries no timestamps or run ids."""
    document = {
        "summary": summary.model_dump(by_alias=True),
        "discoveries": [entry.model_dump(by_alias=True, exclude_none=True, mode="json") for entry in entries],
    }
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def render_template(entries: list[DiscoveryEntry]) -> str:
    """JSONC suggestion document for non-owned entries that carry an id.

    Each app is preceded by comments describing where it was detected, so an
    operator can copy selected entries into a profile's ``apps`` list.
    """
    candidates: list[DiscoveryEntry] = []
    names: set[str] = set()
    for entry in entries:
        if entry.owned_by_driver or not entry.suggested_driver_id or entry.name in names:
            continue
        names.add(entry.name)
        candidates.append(entry)

    lines = [
        "// Software found on this machine that no installed package accounts for.",
        "// Review each entry and copy the ones you want into a profile's \"apps\" list.",
        "{",
    ]
    if not candidates:
        lines.append('  "apps": []')
    else:
        lines.append('  "apps": [')
        for entry in candidates:
            lines.append(f"    // {entry.name} {entry.version or entry.display_version or ''}".rstrip())
            if entry.display_name:
                lines.append(f"    //   registry: {entry.display_name}")
            location = entry.path or entry.install_location
            if location:
                lines.append(f"    //   {entry.method.value}: {location}")
            app = {"id": entry.name, "refs": {"windows": entry.suggested_driver_id}}
            lines.append(f"    {json.dumps(app, ensure_ascii=False)},")
        lines.append("  ]")
    lines.append("}")
    return "\n".join(lines) + "\n"


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)


def run_discovery(ctx: RunContext, output_dir: str | Path | None = None) -> DiscoveryResult:
    """Detect software, cross-check ownership and write report and template.

    Args:
        ctx: Run context
        output_dir: Folder for the report and template (default: ``state/discovery``)

    Returns:
        DiscoveryResult envelope. ``success`` is False only when the driver
        listing failed; discoveries are still reported, all unowned.
    """
    output_root = Path(output_dir) if output_dir is not None else get_state_dir() / "discovery"

    with ctx.start_run("discover") as run:
        run.events.phase("discover", "start")

        found = detect_path_tools(ctx.probe) + detect_registry(
            ctx.probe, include_unmatched=ctx.settings.include_unmatched_registry
        )
        logger.info(f"Detected {len(found)} candidate(s)")

        driver_name = ctx.settings.driver
        installed: list[str] = []
        error = None
        try:
            driver = ctx.get_driver()
            driver_name = driver.name
            installed = list(driver.get_installed_package_ids())
        except DriverError as e:
            logger.warning(f"Ownership cross-check skipped: {e.message}")
            run.events.error("driver", e.message)
            error = ErrorDetail(
                code=ErrorCode.DRIVER_ERROR.value,
                message=e.message,
                remediation=e.remediation,
            )

        discoveries = sort_discoveries(mark_ownership(found, installed))
        summary = summarize(discoveries)

        actions = []
        for entry in discoveries:
            reason = "owned" if entry.owned_by_driver else "unowned"
            actions.append(
                RunAction(
                    id=entry.name,
                    kind="discovery",
                    status=ActionStatus.FOUND,
                    reason=reason,
                    message=f"{entry.method.value}: {entry.suggested_driver_id or 'no suggested id'}",
                    driver=driver_name,
                    path=entry.path or entry.install_location,
                )
            )
            run.events.item(
                entry.name,
                ActionStatus.FOUND.event_status,
                driver=driver_name,
                reason=reason,
                method=entry.method.value,
                suggestedDriverId=entry.suggested_driver_id,
            )

        report_file: Path | None = None
        template_file: Path | None = None
        try:
            _write_text(output_root / REPORT_FILENAME, render_report(discoveries, summary))
            report_file = output_root / REPORT_FILENAME
            run.events.artifact("report", report_file)
            _write_text(output_root / TEMPLATE_FILENAME, render_template(discoveries))
            template_file = output_root / TEMPLATE_FILENAME
            run.events.artifact("template", template_file)
        except OSError as e:
            logger.error(f"Failed to write discovery output to {output_root}: {e}")
            run.events.error("output", str(e))
            # replaces any driver error
            error = ErrorDetail(
                code=ErrorCode.OUTPUT_WRITE_FAILED.value,
                message=f"Failed to write discovery output to {output_root}: {e}",
                detail={"outputDir": str(output_root)},
                remediation="Choose a writable --output-dir",
            )

        state_file = run.persist(None, summary.model_dump(by_alias=True), actions)

        run.events.summary(
            "discover",
            total=summary.total,
            owned=summary.owned,
            unowned=summary.unowned,
        )
        run.events.phase("discover", "complete")

        logger.info(f"Discovery: {summary.total} found, {summary.owned} owned, {summary.unowned} unowned")

        return DiscoveryResult(
            summary=summary,
            discoveries=discoveries,
            report_file=str(report_file) if report_file else None,
            template_file=str(template_file) if template_file else None,
            run_id=run.run_id,
            state_file=str(state_file),
            log_file=str(run.log_file) if run.log_file else None,
            events_file=str(run.events_file) if run.events_file else None,
            success=error is None,
            error=error,
        )
