"""Run-state models.

A run state is written once at the end of every operation and never rewritten.
Stored in state/runs/{command}-{run_id}.json.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from .base import CamelCaseModel


class ActionStatus(str, Enum):
    """Per-item outcome recorded in run state.

    PASS/FAIL belong to verify, EXPORTED/SKIP/FAIL/DRY_RUN to export and
    FOUND to discovery.
    """

    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"
    EXPORTED = "exported"
    DRY_RUN = "dry-run"
    FOUND = "found"

    @property
    def event_status(self) -> str:
        """Item event vocabulary: success, skipped or failed."""
        if self is ActionStatus.FAIL:
            return "failed"
        if self is ActionStatus.SKIP:
            return "skipped"
        return "success"


class ManifestRef(CamelCaseModel):
    """Identity of the manifest an operation ran against."""

    path: str = Field(description="Manifest file path")
    name: str = Field(description="Manifest name")
    hash: str = Field(description="sha256 of the manifest file bytes")


class RunAction(CamelCaseModel):
    """Result of processing one item."""

    id: str = Field(description="Item identifier (app id, check label, restore source, tool name)")
    kind: str = Field(description="app | verify | restore | snapshot | discovery")
    status: ActionStatus = Field(description="Item outcome")
    reason: str | None = Field(default=None, description="Short machine-friendly reason")
    message: str | None = Field(default=None, description="Human readable detail")
    driver: str | None = Field(default=None, description="Driver that answered an app check")
    path: str | None = Field(default=None, description="Expanded system path involved")
    warnings: list[str] = Field(default_factory=list, description="Policy warnings for this item")


class RunState(CamelCaseModel):
    """Persisted, immutable record of one operation run."""

    run_id: str = Field(description="Unique run identifier")
    timestamp: datetime = Field(description="Run completion timestamp (UTC)")
    command: str = Field(description="verify | export | discover")
    manifest: ManifestRef | None = Field(default=None, description="Manifest the run used")
    summary: dict[str, Any] = Field(default_factory=dict, description="Operation summary counters")
    actions: list[RunAction] = Field(default_factory=list, description="Ordered per-item results")
