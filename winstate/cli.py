"""winstate command line interface.

Thin wrapper over the operations: each command loads configuration, builds a
RunContext, runs one operation and renders its result envelope.

Exit codes:
    0  success
    1  one or more items failed (the run itself completed)
    2  input error (profile missing, malformed or cyclic manifest, read-only target)
"""

import json
import logging
import sys
from collections.abc import Callable
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import NoReturn

import click

from . import __version__
from .config.loader import load_config
from .config.settings import WinstateSettings
from .context import RunContext
from .errors import CyclicIncludeError
from .errors import ErrorCode
from .errors import WinstateError
from .manifests import add_apps
from .manifests import add_exclude_configs
from .manifests import add_exclusions
from .manifests import locate_profile
from .manifests import new_overlay
from .manifests import read_resolved
from .models.results import DiscoveryResult
from .models.results import ErrorDetail
from .models.results import ExportResult
from .models.results import OperationResult
from .models.results import VerifyResult
from .models.runs import ActionStatus
from .operations import run_discovery
from .operations import run_export
from .operations import run_verify
from .operations.runs import LOG_FORMAT
from .operations.verify import APPLY_HINT

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_INPUT_ERROR = 2

STATUS_STYLES = {
    ActionStatus.PASS: ("✓", "green"),
    ActionStatus.EXPORTED: ("✓", "green"),
    ActionStatus.DRY_RUN: ("~", "cyan"),
    ActionStatus.SKIP: ("-", "yellow"),
    ActionStatus.FAIL: ("✗", "red"),
    ActionStatus.FOUND: ("•", None),
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def _fail_input(error: WinstateError, as_json: bool) -> NoReturn:
    detail = {"chain": error.chain} if isinstance(error, CyclicIncludeError) else {}
    error_detail = ErrorDetail(
        code=error.code.value,
        message=error.message,
        detail=detail,
        remediation=error.remediation,
    )
    if as_json:
        envelope = {"success": False, "error": error_detail.model_dump(by_alias=True)}
        click.echo(json.dumps(envelope, indent=2))
    else:
        click.secho(f"Error: {error.message}", fg="red", err=True)
        if error.remediation:
            click.echo(f"Hint: {error.remediation}", err=True)
    sys.exit(EXIT_INPUT_ERROR)


@contextmanager
def _input_errors(as_json: bool = False) -> Iterator[None]:
    try:
        yield
    except WinstateError as e:
        logger.debug(f"Input error: {e.message}")
        _fail_input(e, as_json)


def _finish(result: OperationResult, as_json: bool, render: Callable[[OperationResult], None]) -> NoReturn:
    if as_json:
        click.echo(result.model_dump_json(by_alias=True, indent=2))
    else:
        render(result)
        click.echo(f"Run state: {result.state_file}")
        if result.log_file:
            click.echo(f"Log: {result.log_file}")
    sys.exit(EXIT_OK if result.success else EXIT_FAILURES)


def _print_actions(result: VerifyResult | ExportResult) -> None:
    for action in result.results:
        symbol, color = STATUS_STYLES[action.status]
        click.secho(f"  {symbol} {action.id}", fg=color, nl=False)
        click.echo(f"  {action.message}" if action.message else "")
        for warning in action.warnings:
            click.secho(f"      ! {warning}", fg="yellow")


def _render_verify(result: VerifyResult) -> None:
    summary = result.summary
    color = "green" if result.success else "red"
    click.secho(f"Verify {result.manifest.name}: {summary.passed} passed, {summary.failed} failed", fg=color, bold=True)
    _print_actions(result)
    if not result.success:
        click.echo(f"\nNext: {APPLY_HINT}")


def _render_export(result: ExportResult) -> None:
    summary = result.summary
    verb = "Would export" if summary.dry_run else "Exported"
    color = "green" if result.success else "red"
    click.secho(
        f"{verb} {summary.exported} entries to {result.export_dir} "
        f"({summary.skipped} skipped, {summary.failed} failed, {summary.warned} warned)",
        fg=color,
        bold=True,
    )
    _print_actions(result)
    if summary.warned:
        click.secho("\nSome exported paths look sensitive; review them before sharing the export folder.", fg="yellow")
    if summary.dry_run:
        click.echo("\nNext: re-run without --dry-run to copy the files")


def _render_discovery(result: DiscoveryResult) -> None:
    summary = result.summary
    click.secho(
        f"Discovered {summary.total} item(s): {summary.owned} owned by the driver, {summary.unowned} not",
        bold=True,
    )
    for entry in result.discoveries:
        marker = "owned" if entry.owned_by_driver else "unowned"
        color = "green" if entry.owned_by_driver else "yellow"
        version = entry.version or entry.display_version or ""
        click.secho(f"  [{marker}] ", fg=color, nl=False)
        click.echo(f"{entry.name} {version} ({entry.method.value}) -> {entry.suggested_driver_id or '-'}")
    if result.error and result.error.code == ErrorCode.OUTPUT_WRITE_FAILED.value:
        click.secho(f"\n{result.error.message}", fg="red")
    elif result.error:
        click.secho(f"\nOwnership not checked: {result.error.message}", fg="red")
    if result.report_file:
        click.echo(f"\nReport: {result.report_file}")
    if result.template_file:
        click.echo(f"Template: {result.template_file}")
    if summary.unowned and result.template_file:
        click.echo("Next: review the template and promote entries with 'winstate profile add-app'")


def operation_options(func: Callable) -> Callable:
    func = click.option("--json", "as_json", is_flag=True, help="Print the JSON result envelope on stdout")(func)
    func = click.option(
        "--events/--no-events",
        default=None,
        help="Stream NDJSON progress events on stderr (default: from config)",
    )(func)
    return func


def _context(settings: WinstateSettings, events: bool | None) -> RunContext:
    return RunContext.from_settings(settings, events_enabled=events)


@click.group()
@click.version_option(version=__version__, prog_name="winstate")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: winstate.yaml in the config directory)",
)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.option(
    "--profiles-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory profiles are looked up in",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None, profiles_dir: Path | None):
    """winstate - reconcile a declared machine state against this host."""
    settings = load_config(config_path)
    updates = {}
    if log_level:
        updates["log_level"] = log_level
    if profiles_dir:
        updates["profiles_dir"] = str(profiles_dir.expanduser().resolve())
    if updates:
        settings = settings.model_copy(update=updates)
    _configure_logging(settings.log_level)
    ctx.obj = settings


@cli.command()
@click.argument("manifest")
@operation_options
@click.pass_obj
def verify(settings: WinstateSettings, manifest: str, as_json: bool, events: bool | None):
    """Check that MANIFEST's apps are installed and its checks pass.

    MANIFEST is a profile name or a path to a bare, folder or zip profile.
    """
    with _input_errors(as_json):
        location = locate_profile(manifest, settings.profiles_path)
        result = run_verify(location.path, _context(settings, events))
    _finish(result, as_json, _render_verify)


@cli.command()
@click.argument("manifest")
@click.option(
    "--export-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Destination folder (default: the profile's asset folder)",
)
@click.option("--dry-run", is_flag=True, help="Report what would be copied without writing anything")
@operation_options
@click.pass_obj
def export(
    settings: WinstateSettings,
    manifest: str,
    export_dir: Path | None,
    dry_run: bool,
    as_json: bool,
    events: bool | None,
):
    """Copy MANIFEST's restore targets from this machine into an export folder."""
    with _input_errors(as_json):
        location = locate_profile(manifest, settings.profiles_path)
        result = run_export(location.path, _context(settings, events), export_dir=export_dir, dry_run=dry_run)
    _finish(result, as_json, _render_export)


@cli.command()
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Folder for the report and template (default: state/discovery)",
)
@operation_options
@click.pass_obj
def discover(settings: WinstateSettings, output_dir: Path | None, as_json: bool, events: bool | None):
    """Find software installed outside the package driver."""
    with _input_errors(as_json):
        result = run_discovery(_context(settings, events), output_dir=output_dir)
    _finish(result, as_json, _render_discovery)


@cli.group()
def profile():
    """Inspect and edit profiles."""


@profile.command("resolve")
@click.argument("target")
@click.option("--json", "as_json", is_flag=True, help="Print the resolved manifest as JSON")
@click.pass_obj
def profile_resolve(settings: WinstateSettings, target: str, as_json: bool):
    """Show TARGET after include merge and exclusions."""
    with _input_errors(as_json):
        location = locate_profile(target, settings.profiles_path)
        resolved = read_resolved(location.path, platform=settings.platform, profiles_dir=settings.profiles_path)

    if as_json:
        click.echo(resolved.model_dump_json(by_alias=True, indent=2))
        return

    click.secho(f"{resolved.name}", bold=True)
    click.echo(f"  Include chain: {' -> '.join(resolved.include_chain)}")
    click.echo(
        f"  Apps: {resolved.net_app_count} ({resolved.local_app_count} local, {resolved.base_app_count} from bases)"
    )
    for app in resolved.apps:
        click.echo(f"    {app.id}: {app.driver_id(settings.platform) or '-'}")
    click.echo(f"  Verify checks: {len(resolved.verify)}")
    click.echo(f"  Restore entries: {len(resolved.restore)}")
    if resolved.exclude:
        click.echo(f"  Excluded apps: {', '.join(resolved.exclude)}")
    if resolved.exclude_configs:
        click.echo(f"  Excluded config modules: {', '.join(resolved.exclude_configs)}")


def _report_added(added: int, noun: str, target: str) -> None:
    if added:
        click.secho(f"Added {added} {noun}(s) to {target}", fg="green")
    else:
        click.echo(f"Nothing to add; {target} already has every {noun}")


@profile.command("add-app")
@click.argument("target")
@click.argument("driver_ids", nargs=-1, required=True)
@click.pass_obj
def profile_add_app(settings: WinstateSettings, target: str, driver_ids: tuple[str, ...]):
    """Add apps by driver-native id (e.g. Git.Git) to bare profile TARGET.

    Comments in the profile file are not preserved when it is rewritten.
    """
    with _input_errors():
        added = add_apps(target, driver_ids, settings.profiles_path, platform=settings.platform)
    _report_added(added, "app", target)


@profile.command("exclude")
@click.argument("target")
@click.argument("app_ids", nargs=-1, required=True)
@click.pass_obj
def profile_exclude(settings: WinstateSettings, target: str, app_ids: tuple[str, ...]):
    """Exclude inherited apps from bare profile TARGET.

    Comments in the profile file are not preserved when it is rewritten.
    """
    with _input_errors():
        added = add_exclusions(target, app_ids, settings.profiles_path)
    _report_added(added, "exclusion", target)


@profile.command("exclude-config")
@click.argument("target")
@click.argument("modules", nargs=-1, required=True)
@click.pass_obj
def profile_exclude_config(settings: WinstateSettings, target: str, modules: tuple[str, ...]):
    """Exclude inherited config modules from bare profile TARGET.

    Comments in the profile file are not preserved when it is rewritten.
    """
    with _input_errors():
        added = add_exclude_configs(target, modules, settings.profiles_path)
    _report_added(added, "config exclusion", target)


@profile.command("new")
@click.argument("name")
@click.option("--include", "includes", multiple=True, help="Base profile to include (repeatable)")
@click.pass_obj
def profile_new(settings: WinstateSettings, name: str, includes: tuple[str, ...]):
    """Create bare overlay profile NAME including the given bases.

    Comments in the profile file are not preserved when it is rewritten.
    """
    with _input_errors():
        added = new_overlay(name, includes, settings.profiles_path)
    click.secho(f"Overlay {name} ready ({added} include(s) added)", fg="green")


@cli.group()
def runs():
    """Inspect recorded runs."""


@runs.command("list")
@click.option("--command", "command_name", default=None, help="Only runs of this command")
@click.option("--limit", default=20, show_default=True, help="Maximum number of runs to show")
@click.option("--json", "as_json", is_flag=True, help="Print run records as JSON")
@click.pass_obj
def runs_list(settings: WinstateSettings, command_name: str | None, limit: int, as_json: bool):
    """List recorded runs, newest first."""
    states = _context(settings, False).store.list_runs(command_name)[:limit]
    if as_json:
        click.echo(json.dumps([state.model_dump(by_alias=True, mode="json") for state in states], indent=2))
        return
    if not states:
        click.echo("No runs recorded")
        return
    for state in states:
        manifest = state.manifest.name if state.manifest else "-"
        counters = ", ".join(f"{key}={value}" for key, value in state.summary.items())
        click.echo(f"{state.run_id}  {state.command:<8} {manifest:<20} {counters}")


@runs.command("show")
@click.argument("run_id")
@click.pass_obj
def runs_show(settings: WinstateSettings, run_id: str):
    """Print one run record as JSON."""
    try:
        state = _context(settings, False).store.load(run_id)
    except FileNotFoundError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(EXIT_INPUT_ERROR)
    click.echo(state.model_dump_json(by_alias=True, indent=2))


def main():
    """Entry point for the winstate CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)
        sys.exit(EXIT_FAILURES)


if __name__ == "__main__":
    main()
