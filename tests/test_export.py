"""
Unit tests for the export/capture engine.

Tests skip vs fail, dry-run purity, directory replacement, the manifest
snapshot, sensitive-path warnings and the default export folder.
"""

import json
from pathlib import Path

import pytest

from winstate.operations import run_export
from winstate.operations.sensitive import SensitivePathPolicy


@pytest.fixture
def live_dir(temp_storage_dir: Path) -> Path:
    """Stand-in for the live system with a file and a directory to capture."""
    live = temp_storage_dir / "live"
    (live / "editor").mkdir(parents=True)
    (live / "editor" / "settings.json").write_text('{"theme": "dark"}')
    (live / "editor" / "keybindings.json").write_text("[]")
    (live / "gitconfig").write_text("[user]\n  name = Dev\n")
    return live


def restore(source: str, target: Path | str) -> dict:
    return {"source": source, "target": str(target)}


@pytest.mark.unit
class TestExportEngine:
    """Test run_export against a temporary live tree."""

    def test_copies_files_and_directories(self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path) -> None:
        """Test each restore target lands at <export>/<source>."""
        path = write_profile(
            "dev",
            {"restore": [restore("git/.gitconfig", live_dir / "gitconfig"), restore("editor", live_dir / "editor")]},
        )
        export_dir = temp_storage_dir / "export"

        result = run_export(path, run_context, export_dir=export_dir)

        assert result.success
        assert result.summary.exported == 2
        assert (export_dir / "git" / ".gitconfig").read_text() == "[user]\n  name = Dev\n"
        assert (export_dir / "editor" / "settings.json").read_text() == '{"theme": "dark"}'
        assert [a.status.value for a in result.results] == ["exported", "exported", "exported"]
        assert result.results[-1].kind == "snapshot"

    def test_missing_target_is_skipped_not_failed(self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path) -> None:
        """Test a target absent from the system is a skip with a not-found reason."""
        path = write_profile(
            "dev",
            {"restore": [restore("gone.txt", live_dir / "gone.txt"), restore("git/.gitconfig", live_dir / "gitconfig")]},
        )

        result = run_export(path, run_context, export_dir=temp_storage_dir / "export")

        skipped = result.results[0]
        assert skipped.status.value == "skip"
        assert skipped.reason == "not-found"
        assert "not found" in skipped.message
        assert result.summary.skipped == 1
        assert result.summary.failed == 0
        assert result.summary.exported == 1
        assert result.success

    def test_copy_error_fails_item_and_continues(self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path) -> None:
        """Test a filesystem error is recorded with its message and later entries still run."""
        export_dir = temp_storage_dir / "export"
        export_dir.mkdir()
        # a regular file where the destination directory should go
        (export_dir / "blocked").write_text("in the way")
        path = write_profile(
            "dev",
            {
                "restore": [
                    restore("blocked/.gitconfig", live_dir / "gitconfig"),
                    restore("editor", live_dir / "editor"),
                ]
            },
        )

        result = run_export(path, run_context, export_dir=export_dir)

        failed = result.results[0]
        assert failed.status.value == "fail"
        assert failed.reason == "copy-failed"
        assert failed.message
        assert result.results[1].status.value == "exported"
        assert (export_dir / "editor" / "settings.json").exists()
        assert result.summary.failed == 1
        assert not result.success
        assert result.error.code == "EXPORT_FAILED"
        assert result.error.detail["failedEntries"] == ["blocked/.gitconfig"]

    def test_source_outside_export_folder_fails(self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path) -> None:
        """Test a source path escaping the export folder is refused."""
        path = write_profile("dev", {"restore": [restore("../escape.txt", live_dir / "gitconfig")]})

        result = run_export(path, run_context, export_dir=temp_storage_dir / "export")

        assert result.results[0].reason == "invalid-source"
        assert not (temp_storage_dir / "escape.txt").exists()

    @pytest.mark.parametrize("source", [".", "", "git/.."])
    def test_source_naming_the_export_root_is_refused(
        self, run_context, write_profile, live_dir: Path, profiles_dir: Path, source: str
    ) -> None:
        """Test a source resolving to the export folder itself never replaces it."""
        other = write_profile("other", {"apps": []})
        path = write_profile("dev", {"restore": [restore(source, live_dir / "editor")]})

        result = run_export(path, run_context)

        assert result.export_dir == str(profiles_dir)
        assert result.results[0].status.value == "fail"
        assert result.results[0].reason == "invalid-source"
        assert other.read_text() == '{\n  "apps": []\n}'
        assert path.exists()
        assert not (profiles_dir / "settings.json").exists()

    def test_source_overwriting_the_manifest_is_refused(self, run_context, write_profile, live_dir: Path) -> None:
        """Test an entry whose destination is the manifest file fails and leaves it intact."""
        path = write_profile("dev", {"restore": [restore("dev.jsonc", live_dir / "gitconfig")]})
        original = path.read_text()

        result = run_export(path, run_context)

        assert result.results[0].reason == "invalid-source"
        assert "manifest" in result.results[0].message
        assert path.read_text() == original

    def test_directory_containing_the_manifest_is_refused(self, run_context, write_profile, live_dir: Path) -> None:
        """Test a folder profile cannot be replaced by a directory entry at its own path."""
        folder = write_profile("team", {"restore": [restore("team", live_dir / "editor")]}, fmt="folder")

        result = run_export(folder, run_context, export_dir=folder.parent)

        assert result.results[0].reason == "invalid-source"
        assert (folder / "manifest.jsonc").exists()

    def test_unreadable_target_fails_item_and_continues(
        self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path
    ) -> None:
        """Test an OS error while probing a target is recorded and later entries still run."""
        too_long = "/tmp/" + "a" * 300 + "/file"
        path = write_profile(
            "dev",
            {"restore": [restore("bad", too_long), restore("git/.gitconfig", live_dir / "gitconfig")]},
        )
        export_dir = temp_storage_dir / "export"

        result = run_export(path, run_context, export_dir=export_dir)

        bad, ok = result.results[0], result.results[1]
        assert bad.status.value == "fail"
        assert bad.reason == "copy-failed"
        assert bad.message
        assert ok.status.value == "exported"
        assert (export_dir / "git" / ".gitconfig").exists()
        assert result.summary.failed == 1
        assert Path(result.state_file).exists()

    def test_directory_is_replaced_not_merged(self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path) -> None:
        """Test re-exporting a directory removes files no longer present live."""
        export_dir = temp_storage_dir / "export"
        (export_dir / "editor").mkdir(parents=True)
        (export_dir / "editor" / "stale.json").write_text("old")
        path = write_profile("dev", {"restore": [restore("editor", live_dir / "editor")]})

        run_export(path, run_context, export_dir=export_dir)

        assert not (export_dir / "editor" / "stale.json").exists()
        assert (export_dir / "editor" / "keybindings.json").exists()

    def test_rerun_is_idempotent(self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path) -> None:
        """Test exporting twice yields the same tree."""
        export_dir = temp_storage_dir / "export"
        path = write_profile("dev", {"restore": [restore("editor", live_dir / "editor")]})

        run_export(path, run_context, export_dir=export_dir)
        first = sorted(p.relative_to(export_dir) for p in export_dir.rglob("*"))
        second_result = run_export(path, run_context, export_dir=export_dir)

        assert sorted(p.relative_to(export_dir) for p in export_dir.rglob("*")) == first
        assert second_result.summary.exported == 1

    def test_targets_expand_environment_variables(
        self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test %VAR% targets are expanded at use time."""
        monkeypatch.setenv("WINSTATE_LIVE", str(live_dir))
        path = write_profile("dev", {"restore": [restore("git/.gitconfig", "%WINSTATE_LIVE%/gitconfig")]})

        result = run_export(path, run_context, export_dir=temp_storage_dir / "export")

        assert result.results[0].status.value == "exported"
        assert result.results[0].path == str(live_dir / "gitconfig")

    def test_default_export_dir_is_asset_root(self, run_context, write_profile, live_dir: Path, profiles_dir: Path) -> None:
        """Test a folder profile exports into its own folder."""
        folder = write_profile("team", {"restore": [restore("git/.gitconfig", live_dir / "gitconfig")]}, fmt="folder")

        result = run_export(folder, run_context)

        assert result.export_dir == str(folder)
        assert (folder / "git" / ".gitconfig").exists()
        assert (folder / "manifest.snapshot").read_text() == (folder / "manifest.jsonc").read_text()

    def test_snapshot_of_zip_profile(self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path) -> None:
        """Test the snapshot of a zip profile is the archived manifest text."""
        archive = write_profile("corp", '{"name": "corp", "restore": []}', fmt="zip")
        export_dir = temp_storage_dir / "export"

        result = run_export(archive, run_context, export_dir=export_dir)

        assert (export_dir / "manifest.snapshot").read_text() == '{"name": "corp", "restore": []}'
        assert result.summary.exported == 0
        assert result.success


@pytest.mark.unit
class TestDryRun:
    """Test dry-run purity."""

    def test_dry_run_writes_nothing_and_counts_accurately(
        self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path
    ) -> None:
        """Test no export files appear, yet counts match a real run."""
        export_dir = temp_storage_dir / "export"
        path = write_profile(
            "dev",
            {
                "restore": [
                    restore("git/.gitconfig", live_dir / "gitconfig"),
                    restore("editor", live_dir / "editor"),
                    restore("gone.txt", live_dir / "gone.txt"),
                ]
            },
        )
        live_before = sorted((p, p.stat().st_mtime_ns) for p in live_dir.rglob("*"))

        result = run_export(path, run_context, export_dir=export_dir, dry_run=True)

        assert not export_dir.exists()
        assert sorted((p, p.stat().st_mtime_ns) for p in live_dir.rglob("*")) == live_before
        assert result.summary.dry_run
        assert result.summary.exported == 2
        assert result.summary.skipped == 1
        assert [a.status.value for a in result.results] == ["dry-run", "dry-run", "skip"]

        real = run_export(path, run_context, export_dir=export_dir)
        assert real.summary.exported == result.summary.exported
        assert real.summary.skipped == result.summary.skipped

    def test_dry_run_events_are_flagged(self, run_context, write_profile, live_dir: Path, temp_storage_dir: Path, event_stream) -> None:
        """Test item events carry dryRun and the summary reports it."""
        path = write_profile("dev", {"restore": [restore("git/.gitconfig", live_dir / "gitconfig")]})

        run_export(path, run_context, export_dir=temp_storage_dir / "export", dry_run=True)

        events = [json.loads(line) for line in event_stream.getvalue().splitlines()]
        items = [e for e in events if e["event"] == "item"]
        summary = [e for e in events if e["event"] == "summary"][0]
        assert items[0]["dryRun"] is True
        assert items[0]["status"] == "success"
        assert summary["dryRun"] is True
        assert not any(e["event"] == "artifact" for e in events)


@pytest.mark.unit
class TestSensitivePaths:
    """Test sensitive-path warnings."""

    def test_sensitive_entries_are_exported_and_flagged(
        self, run_context, write_profile, temp_storage_dir: Path
    ) -> None:
        """Test a key file is still copied but warned about and counted."""
        ssh = temp_storage_dir / "home" / ".ssh"
        ssh.mkdir(parents=True)
        (ssh / "id_ed25519").write_text("PRIVATE")
        path = write_profile("dev", {"restore": [restore("ssh", ssh)]})

        result = run_export(path, run_context, export_dir=temp_storage_dir / "export")

        action = result.results[0]
        assert action.status.value == "exported"
        assert any(".ssh" in warning for warning in action.warnings)
        assert result.summary.warned == 1
        assert result.success

    def test_ordinary_paths_have_no_warnings(self) -> None:
        """Test an ordinary config path is not flagged."""
        policy = SensitivePathPolicy()

        assert policy.evaluate(Path("/home/dev/.config/editor/settings.json")) == []

    @pytest.mark.parametrize(
        "path",
        [
            "C:/Users/dev/.aws/config",
            "/home/dev/.docker/config.json",
            "/home/dev/certs/server.PEM",
            "C:\\Users\\dev\\.git-credentials",
            "/home/dev/.ssh/id_rsa.pub",
        ],
    )
    def test_builtin_patterns(self, path: str) -> None:
        """Test built-in patterns match case-insensitively with either separator."""
        assert SensitivePathPolicy().evaluate(Path(path))

    def test_configured_extra_patterns(self, run_context, write_profile, temp_storage_dir: Path) -> None:
        """Test sensitive_patterns from settings extend the policy."""
        vault = temp_storage_dir / "team.vault"
        vault.write_text("x")
        run_context.settings.sensitive_patterns = ["*.vault"]
        path = write_profile("dev", {"restore": [restore("team.vault", vault)]})

        result = run_export(path, run_context, export_dir=temp_storage_dir / "export")

        assert result.results[0].warnings
        assert result.summary.warned == 1
