"""Verify engine: compare a resolved manifest against live driver and verifier state.

Start -> per-app checks -> per-verify-item checks -> summarize -> persist -> emit.

A failing item never aborts the run. The driver's installed listing is
queried once per run, and ``pass + fail`` always equals the number of apps
with a driver-native ref plus the number of explicit verify entries.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ..errors import DriverError
from ..errors import ErrorCode
from ..errors import UnknownVerifyTypeError
from ..manifests.loader import read_resolved
from ..models.manifest import ResolvedManifest
from ..models.results import ErrorDetail
from ..models.results import VerifyResult
from ..models.results import VerifySummary
from ..models.runs import ActionStatus
from ..models.runs import RunAction
from ..verifiers.checks import build_check
from .runs import RunSession
from .runs import manifest_ref

if TYPE_CHECKING:
    from ..context import RunContext

logger = logging.getLogger(__name__)

APPLY_HINT = "Run 'winstate apply' against this manifest to install missing apps, then verify again"


def _record(run: RunSession, action: RunAction) -> RunAction:
    run.events.item(
        action.id,
        action.status.event_status,
        driver=action.driver,
        reason=action.reason,
        message=action.message,
        kind=action.kind,
    )
    return action


def _check_apps(manifest: ResolvedManifest, ctx: RunContext, run: RunSession) -> list[RunAction]:
    apps = [(app, app.driver_id(ctx.platform)) for app in manifest.apps]
    apps = [(app, driver_id) for app, driver_id in apps if driver_id]
    skipped = len(manifest.apps) - len(apps)
    if skipped:
        logger.debug(f"{skipped} app(s) have no '{ctx.platform}' ref and are not checked")
    if not apps:
        return []

    driver_name = ctx.settings.driver
    installed: set[str] | None = None
    driver_failure: str | None = None
    try:
        driver = ctx.get_driver()
        driver_name = driver.name
        installed = {package_id.casefold() for package_id in driver.get_installed_package_ids()}
    except DriverError as e:
        driver_failure = e.message
        logger.error(f"Driver query failed: {e.message}")
        run.events.error("driver", e.message)

    actions = []
    for app, driver_id in apps:
        if installed is None:
            action = RunAction(
                id=app.id,
                kind="app",
                status=ActionStatus.FAIL,
                reason="driver-error",
                message=driver_failure,
                driver=driver_name,
            )
        elif driver_id.casefold() in installed:
            action = RunAction(
                id=app.id,
                kind="app",
                status=ActionStatus.PASS,
                reason="installed",
                message=f"{driver_id} is installed",
                driver=driver_name,
            )
        else:
            action = RunAction(
                id=app.id,
                kind="app",
                status=ActionStatus.FAIL,
                reason="missing",
                message=f"{driver_id} is not installed",
                driver=driver_name,
            )
        actions.append(_record(run, action))
    return actions


def _check_entries(manifest: ResolvedManifest, ctx: RunContext, run: RunSession) -> list[RunAction]:
    actions = []
    for entry in manifest.verify:
        try:
            result = build_check(entry).run(ctx.probe)
            status = ActionStatus.PASS if result.success else ActionStatus.FAIL
            reason = "ok" if result.success else "check-failed"
            message = result.message
        except UnknownVerifyTypeError as e:
            status, reason, message = ActionStatus.FAIL, "unknown-type", e.message
        except ValueError as e:
            status, reason, message = ActionStatus.FAIL, "invalid-check", str(e)

        actions.append(
            _record(run, RunAction(id=entry.label, kind="verify", status=status, reason=reason, message=message))
        )
    return actions


def run_verify(manifest_path: str | Path, ctx: RunContext) -> VerifyResult:
    """Verify a manifest against the live system.

    Args:
        manifest_path: Manifest in any profile format
        ctx: Run context

    Returns:
        VerifyResult envelope; ``success`` is True only when nothing failed

    Raises:
        ProfileNotFoundError, ManifestParseError, CyclicIncludeError: Input errors,
            raised before any run state is written
    """
    manifest = read_resolved(manifest_path, platform=ctx.platform, profiles_dir=ctx.profiles_dir)
    ref = manifest_ref(manifest.source_path, manifest.name)

    with ctx.start_run("verify") as run:
        run.events.phase("verify", "start")

        app_actions = _check_apps(manifest, ctx, run)
        check_actions = _check_entries(manifest, ctx, run)
        actions = app_actions + check_actions

        summary = VerifySummary(
            passed=sum(1 for a in actions if a.status == ActionStatus.PASS),
            failed=sum(1 for a in actions if a.status == ActionStatus.FAIL),
            apps_checked=len(app_actions),
            verifiers_checked=len(check_actions),
        )
        success = summary.failed == 0

        state_file = run.persist(ref, summary.model_dump(by_alias=True), actions)

        error = None
        if not success:
            missing_apps = [a.id for a in app_actions if a.status == ActionStatus.FAIL]
            failed_checks = sum(1 for a in check_actions if a.status == ActionStatus.FAIL)
            error = ErrorDetail(
                code=ErrorCode.VERIFY_FAILED.value,
                message=f"{len(missing_apps)} app(s) missing, {failed_checks} verifier(s) failed",
                detail={"missingApps": missing_apps, "failedVerifiers": failed_checks},
                remediation=APPLY_HINT,
            )
            run.events.error("verify", error.message)

        run.events.summary("verify", **{"pass": summary.passed, "fail": summary.failed, "success": success})
        run.events.phase("verify", "complete")

        logger.info(f"Verify {manifest.name}: {summary.passed} passed, {summary.failed} failed")

        return VerifyResult(
            manifest=ref,
            summary=summary,
            results=actions,
            run_id=run.run_id,
            state_file=str(state_file),
            log_file=str(run.log_file) if run.log_file else None,
            events_file=str(run.events_file) if run.events_file else None,
            success=success,
            error=error,
        )
