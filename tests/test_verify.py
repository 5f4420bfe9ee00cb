"""
Unit tests for the verify engine.

Tests pass/fail taxonomy, summary arithmetic, single driver query,
driver failures, unknown verify types, run-state persistence and events.
"""

import json
from pathlib import Path

import pytest

from winstate.drivers.base import StaticDriver
from winstate.errors import CyclicIncludeError
from winstate.errors import DriverError
from winstate.errors import ProfileNotFoundError
from winstate.operations import run_verify
from winstate.operations.runs import RunStateStore
from winstate.storage.paths import get_runs_dir


class FailingDriver:
    name = "winget"

    def __init__(self) -> None:
        self.calls = 0

    def get_installed_package_ids(self) -> list[str]:
        self.calls += 1
        raise DriverError("winget is not available or did not respond in time")


def manifest_data(temp_dir: Path) -> dict:
    present = temp_dir / "present.txt"
    present.write_text("x")
    return {
        "name": "dev",
        "apps": [
            {"id": "git", "refs": {"windows": "Git.Git"}},
            {"id": "pwsh", "refs": {"windows": "microsoft.powershell"}},
            {"id": "node", "refs": {"windows": "OpenJS.NodeJS"}},
        ],
        "verify": [
            {"type": "file-exists", "path": str(present)},
            {"type": "file-exists", "path": str(temp_dir / "absent.txt")},
            {"type": "command-exists", "command": "git"},
        ],
    }


@pytest.mark.unit
class TestVerifyEngine:
    """Test run_verify end to end against fakes."""

    def test_pass_fail_taxonomy(self, run_context, write_profile, temp_storage_dir: Path) -> None:
        """Test installed apps pass, missing apps and failed checks fail."""
        run_context.probe.commands["git"] = "/usr/bin/git"
        path = write_profile("dev", manifest_data(temp_storage_dir))

        result = run_verify(path, run_context)

        statuses = {action.id: (action.status.value, action.reason) for action in result.results}
        assert statuses["git"] == ("pass", "installed")
        assert statuses["pwsh"] == ("pass", "installed")
        assert statuses["node"] == ("fail", "missing")
        assert result.summary.passed == 4
        assert result.summary.failed == 2
        assert result.summary.apps_checked == 3
        assert result.summary.verifiers_checked == 3
        assert not result.success

    def test_summary_arithmetic(self, run_context, write_profile, temp_storage_dir: Path) -> None:
        """Test pass + fail == apps with a platform ref + explicit verify entries."""
        data = manifest_data(temp_storage_dir)
        data["apps"].append({"id": "mac-only", "refs": {"macos": "brew.thing"}})
        data["verify"].append({"type": "registry-key-exists", "path": "HKLM\\SOFTWARE\\Git"})
        path = write_profile("dev", data)

        result = run_verify(path, run_context)

        assert result.summary.passed + result.summary.failed == 3 + 4
        assert result.summary.total == len(result.results)

    def test_driver_queried_once(self, run_context, write_profile, temp_storage_dir: Path) -> None:
        """Test the installed listing is fetched once per run regardless of app count."""
        path = write_profile("dev", manifest_data(temp_storage_dir))

        run_verify(path, run_context)

        assert run_context.driver.calls == 1

    def test_all_pass_is_success(self, run_context, write_profile) -> None:
        """Test a clean run has no error detail."""
        path = write_profile("dev", {"apps": [{"id": "git", "refs": {"windows": "Git.Git"}}]})

        result = run_verify(path, run_context)

        assert result.success
        assert result.error is None

    def test_failure_carries_error_detail(self, run_context, write_profile, temp_storage_dir: Path) -> None:
        """Test the aggregate error names missing apps and failed verifier count."""
        path = write_profile("dev", manifest_data(temp_storage_dir))

        result = run_verify(path, run_context)

        assert result.error.code == "VERIFY_FAILED"
        assert result.error.detail["missingApps"] == ["node"]
        # absent file plus command-exists with git not on PATH
        assert result.error.detail["failedVerifiers"] == 2
        assert "apply" in result.error.remediation

    def test_unknown_verify_type_is_a_failed_item(self, run_context, write_profile) -> None:
        """Test an unknown verify tag is recorded as a failure, not a crash."""
        path = write_profile("dev", {"verify": [{"type": "service-running", "name": "sshd"}]})

        result = run_verify(path, run_context)

        [action] = result.results
        assert action.status.value == "fail"
        assert action.reason == "unknown-type"
        assert action.message == "unknown verify type: service-running"

    def test_invalid_check_is_a_failed_item(self, run_context, write_profile) -> None:
        """Test a check missing its parameters fails only itself."""
        path = write_profile("dev", {"verify": [{"type": "file-exists"}, {"type": "command-exists", "command": "x"}]})

        result = run_verify(path, run_context)

        assert [a.reason for a in result.results] == ["invalid-check", "check-failed"]

    def test_unusable_path_does_not_abort_the_run(self, run_context, write_profile) -> None:
        """Test an OS error inside one check fails that check and the rest still run."""
        run_context.probe.commands["git"] = "/usr/bin/git"
        path = write_profile(
            "dev",
            {
                "verify": [
                    {"type": "file-exists", "path": "/tmp/" + "a" * 300 + "/file"},
                    {"type": "command-exists", "command": "git"},
                ]
            },
        )

        result = run_verify(path, run_context)

        assert [a.status.value for a in result.results] == ["fail", "pass"]
        assert result.summary.passed + result.summary.failed == 2
        assert Path(result.state_file).exists()

    def test_driver_error_fails_every_app(self, run_context, write_profile, event_stream) -> None:
        """Test a failed driver query marks each app failed and the run continues."""
        run_context.driver = FailingDriver()
        path = write_profile(
            "dev",
            {
                "apps": [{"id": "git", "refs": {"windows": "Git.Git"}}, {"id": "vlc", "refs": {"windows": "VideoLAN.VLC"}}],
                "verify": [{"type": "command-exists", "command": "git"}],
            },
        )

        result = run_verify(path, run_context)

        assert [a.reason for a in result.results] == ["driver-error", "driver-error", "check-failed"]
        assert run_context.driver.calls == 1
        events = [json.loads(line) for line in event_stream.getvalue().splitlines()]
        assert any(e["event"] == "error" and e["scope"] == "driver" for e in events)

    def test_no_apps_means_no_driver_query(self, run_context, write_profile) -> None:
        """Test a manifest with only checks never touches the driver."""
        path = write_profile("dev", {"verify": [{"type": "command-exists", "command": "git"}]})

        run_verify(path, run_context)

        assert run_context.driver.calls == 0

    def test_resolved_view_is_verified(self, run_context, write_profile) -> None:
        """Test inherited apps are checked and excluded ones are not."""
        write_profile("base", {"apps": [{"id": "git", "refs": {"windows": "Git.Git"}}, {"id": "node", "refs": {"windows": "OpenJS.NodeJS"}}]})
        path = write_profile("dev", {"includes": ["base"], "exclude": ["node"]})

        result = run_verify(path, run_context)

        assert [a.id for a in result.results] == ["git"]
        assert result.success


@pytest.mark.unit
class TestVerifyRecords:
    """Test run state and events produced by verify."""

    def test_run_state_is_persisted(self, run_context, write_profile, temp_storage_dir: Path) -> None:
        """Test the run-state file records manifest identity, summary and actions."""
        path = write_profile("dev", manifest_data(temp_storage_dir))

        result = run_verify(path, run_context)

        state_file = Path(result.state_file)
        assert state_file.parent == get_runs_dir()
        assert state_file.name == f"verify-{result.run_id}.json"
        document = json.loads(state_file.read_text())
        assert document["runId"] == result.run_id
        assert document["command"] == "verify"
        assert document["manifest"]["name"] == "dev"
        assert len(document["manifest"]["hash"]) == 64
        assert document["summary"]["pass"] == 3
        assert document["summary"]["fail"] == 3
        assert len(document["actions"]) == 6

        loaded = RunStateStore(get_runs_dir()).load(result.run_id)
        assert loaded.run_id == result.run_id

    def test_log_file_is_reported(self, run_context, write_profile) -> None:
        """Test the per-run log file exists and is named after the run."""
        path = write_profile("dev", {})

        result = run_verify(path, run_context)

        assert Path(result.log_file).exists()
        assert Path(result.log_file).name == f"verify-{result.run_id}.log"

    def test_event_sequence(self, run_context, write_profile, event_stream) -> None:
        """Test phase start, one item per check, summary, phase complete."""
        path = write_profile(
            "dev",
            {"apps": [{"id": "git", "refs": {"windows": "Git.Git"}}], "verify": [{"type": "command-exists", "command": "x"}]},
        )

        result = run_verify(path, run_context)

        events = [json.loads(line) for line in event_stream.getvalue().splitlines()]
        kinds = [e["event"] for e in events]
        assert kinds == ["phase", "item", "item", "error", "summary", "phase"]
        assert events[0]["state"] == "start"
        assert events[1]["id"] == "git"
        assert events[1]["status"] == "success"
        assert events[1]["driver"] == "winget"
        assert events[2]["status"] == "failed"
        assert events[4]["pass"] == 1
        assert events[4]["fail"] == 1
        assert events[-1]["state"] == "complete"
        assert all(e["version"] == 1 for e in events)
        assert Path(result.events_file).read_text().splitlines() == event_stream.getvalue().splitlines()

    def test_events_disabled_writes_nothing(self, settings, fake_probe, write_profile, event_stream) -> None:
        """Test no events are written when streaming is off."""
        from winstate.context import RunContext

        ctx = RunContext.from_settings(
            settings, events_enabled=False, driver=StaticDriver([]), probe=fake_probe, event_stream=event_stream
        )

        result = run_verify(write_profile("dev", {}), ctx)

        assert event_stream.getvalue() == ""
        assert result.events_file is None


@pytest.mark.unit
class TestVerifyInputErrors:
    """Test input errors propagate before any run state is written."""

    def test_missing_manifest(self, run_context, profiles_dir: Path) -> None:
        with pytest.raises(ProfileNotFoundError):
            run_verify(profiles_dir / "ghost.jsonc", run_context)

        assert list(get_runs_dir().iterdir()) == []

    def test_cyclic_manifest(self, run_context, write_profile) -> None:
        write_profile("b", {"includes": ["a"]})
        path = write_profile("a", {"includes": ["b"]})

        with pytest.raises(CyclicIncludeError):
            run_verify(path, run_context)

        assert list(get_runs_dir().iterdir()) == []
