"""Run identity, run-state persistence and per-run logging.

Storage structure:
    state/runs/
        {command}-{run_id}.json       # one immutable record per run
    state/events/
        {command}-{run_id}.jsonl      # event stream copy (when events are enabled)
    logs/
        {command}-{run_id}.log        # per-run log file
"""

import hashlib
import json
import logging
import secrets
from datetime import UTC
from datetime import datetime
from pathlib import Path
from typing import Any

from ..events import EventEmitter
from ..models.runs import ManifestRef
from ..models.runs import RunAction
from ..models.runs import RunState

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def new_run_id(now: datetime | None = None) -> str:
    """Run id unique per invocation: UTC timestamp plus 8 random hex digits."""
    now = now or datetime.now(UTC)
    return f"{now.strftime('%Y%m%dT%H%M%SZ')}-{secrets.token_hex(4)}"


def hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def manifest_ref(path: Path, name: str) -> ManifestRef:
    return ManifestRef(path=str(path), name=name, hash=hash_file(path))


class RunStateStore:
    """Write-once store of run-state records."""

    def __init__(self, runs_dir: Path) -> None:
        self.runs_dir = Path(runs_dir)
        self.runs_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, command: str, run_id: str) -> Path:
        return self.runs_dir / f"{command}-{run_id}.json"

    def save(self, state: RunState) -> Path:
        """Persist a run state.

        Raises:
            FileExistsError: If a record for this run already exists (records are never rewritten)
        """
        path = self.path_for(state.command, state.run_id)
        with open(path, "x", encoding="utf-8") as f:
            f.write(state.model_dump_json(by_alias=True, indent=2))
        logger.info(f"Saved {state.command} run state {state.run_id} to {path}")
        return path

    def load(self, path_or_run_id: str | Path) -> RunState:
        """Load a run state by file path or run id.

        Raises:
            FileNotFoundError: If no record matches
        """
        path = Path(path_or_run_id)
        if not path.is_file():
            matches = sorted(self.runs_dir.glob(f"*-{path_or_run_id}.json"))
            if not matches:
                raise FileNotFoundError(f"Run state not found: {path_or_run_id}")
            path = matches[0]
        return RunState.model_validate(json.loads(path.read_text(encoding="utf-8")))

    def list_runs(self, command: str | None = None) -> list[RunState]:
        """List run states, newest first."""
        pattern = f"{command}-*.json" if command else "*.json"
        states = []
        for path in self.runs_dir.glob(pattern):
            try:
                states.append(RunState.model_validate(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable run state {path}: {e}")
        states.sort(key=lambda s: (s.timestamp, s.run_id), reverse=True)
        return states


class RunSession:
    """One operation run: id, log file, event emitter and final persistence.

    Used as a context manager; the per-run log handler is attached to the
    ``winstate`` logger only while the run is active.
    """

    def __init__(
        self,
        command: str,
        store: RunStateStore,
        log_dir: Path | None = None,
        events: EventEmitter | None = None,
        events_dir: Path | None = None,
    ) -> None:
        self.command = command
        self.store = store
        self.run_id = new_run_id()
        self.log_file = Path(log_dir) / f"{command}-{self.run_id}.log" if log_dir is not None else None
        self.events = events or EventEmitter(enabled=False)
        if self.events.enabled and events_dir is not None and self.events.file_path is None:
            self.events.file_path = Path(events_dir) / f"{command}-{self.run_id}.jsonl"
        self.state_file: Path | None = None
        self._handler: logging.Handler | None = None

    @property
    def events_file(self) -> Path | None:
        return self.events.file_path if self.events.enabled else None

    def __enter__(self) -> "RunSession":
        if self.log_file is not None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            self._handler = logging.FileHandler(self.log_file, encoding="utf-8")
            self._handler.setFormatter(logging.Formatter(LOG_FORMAT))
            self._handler.setLevel(logging.DEBUG)
            logging.getLogger("winstate").addHandler(self._handler)
        logger.info(f"Starting {self.command} run {self.run_id}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            logger.error(f"{self.command} run {self.run_id} aborted: {exc}")
        if self._handler is not None:
            logging.getLogger("winstate").removeHandler(self._handler)
            self._handler.close()
            self._handler = None

    def persist(
        self,
        manifest: ManifestRef | None,
        summary: dict[str, Any],
        actions: list[RunAction],
    ) -> Path:
        state = RunState(
            run_id=self.run_id,
            timestamp=datetime.now(UTC),
            command=self.command,
            manifest=manifest,
            summary=summary,
            actions=actions,
        )
        self.state_file = self.store.save(state)
        return self.state_file
