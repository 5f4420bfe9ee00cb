"""Export/capture engine: the inverse of install-time restore.

For every resolved ``restore`` entry the live ``target`` (system path) is
copied into ``<export_dir>/<source>``. Entries are processed independently:
a missing target is a skip, a copy error is a failure, and neither aborts the
run. Nothing is rolled back; partial success is the intended outcome.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import ErrorCode
from ..errors import WinstateError
from ..manifests.loader import read_resolved
from ..manifests.profiles import classify_path
from ..manifests.profiles import read_manifest_text
from ..models.manifest import ResolvedManifest
from ..models.manifest import RestoreEntry
from ..models.results import ErrorDetail
from ..models.results import ExportResult
from ..models.results import ExportSummary
from ..models.runs import ActionStatus
from ..models.runs import RunAction
from ..probes import expand_path
from ..probes import path_exists
from .runs import RunSession
from .runs import manifest_ref
from .sensitive import SensitivePathPolicy

if TYPE_CHECKING:
    from ..context import RunContext

logger = logging.getLogger(__name__)

SNAPSHOT_NAME = "manifest.snapshot"


def _destination(export_root: Path, source: str) -> Path | None:
    """Destination strictly inside the export root, or None."""
    destination = (export_root / source).resolve()
    root = export_root.resolve()
    if root not in destination.parents:
        return None
    return destination


def _overlaps(destination: Path, protected: tuple[Path, ...]) -> Path | None:
    for path in protected:
        if destination == path or destination in path.parents:
            return path
    return None


def _copy(live_path: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if live_path.is_dir():
        # directories are replaced wholesale, never merged
        if destination.is_dir():
            shutil.rmtree(destination)
        elif destination.exists():
            destination.unlink()
        shutil.copytree(live_path, destination)
    else:
        if destination.is_dir():
            shutil.rmtree(destination)
        shutil.copy2(live_path, destination)


def export_entry(
    entry: RestoreEntry,
    export_root: Path,
    policy: SensitivePathPolicy,
    dry_run: bool = False,
    protected: tuple[Path, ...] = (),
) -> RunAction:
    """Capture one restore entry; never raises for filesystem problems.

    ``protected`` lists resolved paths (the manifest itself) that a
    destination may neither be nor contain.
    """
    live_path = expand_path(entry.target)
    warnings = policy.evaluate(live_path)
    for warning in warnings:
        logger.warning(warning)

    def action(status: ActionStatus, reason: str, message: str) -> RunAction:
        return RunAction(
            id=entry.source,
            kind="restore",
            status=status,
            reason=reason,
            message=message,
            path=str(live_path),
            warnings=warnings,
        )

    try:
        destination = _destination(export_root, entry.source)
        if destination is None:
            return action(
                ActionStatus.FAIL, "invalid-source", f"source must name a path inside the export folder: {entry.source!r}"
            )

        clash = _overlaps(destination, protected)
        if clash is not None:
            return action(ActionStatus.FAIL, "invalid-source", f"source would overwrite the manifest {clash}")

        if not path_exists(live_path):
            return action(ActionStatus.SKIP, "not-found", "not found on system")

        if dry_run:
            return action(ActionStatus.DRY_RUN, "dry-run", f"would copy {live_path} -> {destination}")

        _copy(live_path, destination)
    except OSError as e:
        logger.error(f"Failed to export {live_path}: {e}")
        return action(ActionStatus.FAIL, "copy-failed", str(e))

    logger.debug(f"Exported {live_path} -> {destination}")
    return action(ActionStatus.EXPORTED, "copied", f"copied {live_path} -> {destination}")


def _snapshot(manifest: ResolvedManifest, export_root: Path, run: RunSession) -> RunAction:
    """Copy the manifest into the export folder; failure is only a warning."""
    snapshot_path = export_root / SNAPSHOT_NAME
    try:
        text = read_manifest_text(classify_path(manifest.source_path))
        snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        snapshot_path.write_text(text, encoding="utf-8")
    except (OSError, WinstateError) as e:
        message = e.message if isinstance(e, WinstateError) else str(e)
        logger.warning(f"Failed to write manifest snapshot {snapshot_path}: {message}")
        run.events.error("snapshot", message)
        return RunAction(
            id=SNAPSHOT_NAME,
            kind="snapshot",
            status=ActionStatus.SKIP,
            reason="snapshot-failed",
            message=message,
            path=str(snapshot_path),
            warnings=[f"manifest snapshot not written: {message}"],
        )

    run.events.artifact("snapshot", snapshot_path)
    return RunAction(
        id=SNAPSHOT_NAME,
        kind="snapshot",
        status=ActionStatus.EXPORTED,
        reason="copied",
        message=f"copied {manifest.source_path} -> {snapshot_path}",
        path=str(snapshot_path),
    )


def run_export(
    manifest_path: str | Path,
    ctx: RunContext,
    export_dir: str | Path | None = None,
    dry_run: bool = False,
) -> ExportResult:
    """Capture live config files into an export folder.

    Args:
        manifest_path: Manifest in any profile format
        ctx: Run context
        export_dir: Destination folder (default: the manifest's asset root)
        dry_run: Report what would be copied without touching the filesystem

    Returns:
        ExportResult envelope; ``success`` is True when no entry failed

    Raises:
        ProfileNotFoundError, ManifestParseError, CyclicIncludeError: Input errors
    """
    manifest = read_resolved(manifest_path, platform=ctx.platform, profiles_dir=ctx.profiles_dir)
    ref = manifest_ref(manifest.source_path, manifest.name)
    export_root = Path(export_dir) if export_dir is not None else manifest.asset_root
    policy = SensitivePathPolicy(ctx.settings.sensitive_patterns)
    protected = (manifest.source_path.resolve(),)

    with ctx.start_run("export") as run:
        run.events.phase("export", "start")

        actions: list[RunAction] = []
        for entry in manifest.restore:
            action = export_entry(entry, export_root, policy, dry_run=dry_run, protected=protected)
            actions.append(action)
            run.events.item(
                action.id,
                action.status.event_status,
                reason=action.reason,
                message=action.message,
                dryRun=dry_run or None,
                warnings=action.warnings or None,
            )

        summary = ExportSummary(
            exported=sum(1 for a in actions if a.status in (ActionStatus.EXPORTED, ActionStatus.DRY_RUN)),
            skipped=sum(1 for a in actions if a.status == ActionStatus.SKIP),
            failed=sum(1 for a in actions if a.status == ActionStatus.FAIL),
            warned=sum(1 for a in actions if a.warnings),
            dry_run=dry_run,
        )

        if not dry_run:
            snapshot = _snapshot(manifest, export_root, run)
            if snapshot.warnings:
                summary.warned += 1
            actions.append(snapshot)

        success = summary.failed == 0
        state_file = run.persist(ref, summary.model_dump(by_alias=True), actions)

        error = None
        if not success:
            failed = [a.id for a in actions if a.status == ActionStatus.FAIL]
            error = ErrorDetail(
                code=ErrorCode.EXPORT_FAILED.value,
                message=f"{len(failed)} restore entr{'y' if len(failed) == 1 else 'ies'} could not be exported",
                detail={"failedEntries": failed},
                remediation="Check permissions on the listed paths and re-run export",
            )

        run.events.summary(
            "export",
            exported=summary.exported,
            skipped=summary.skipped,
            failed=summary.failed,
            warned=summary.warned,
            dryRun=dry_run,
        )
        run.events.phase("export", "complete")

        verb = "Would export" if dry_run else "Exported"
        logger.info(
            f"{verb} {summary.exported} of {len(manifest.restore)} entries from {manifest.name} "
            f"({summary.skipped} skipped, {summary.failed} failed, {summary.warned} warned)"
        )

        return ExportResult(
            manifest=ref,
            summary=summary,
            results=actions,
            export_dir=str(export_root),
            run_id=run.run_id,
            state_file=str(state_file),
            log_file=str(run.log_file) if run.log_file else None,
            events_file=str(run.events_file) if run.events_file else None,
            success=success,
            error=error,
        )
