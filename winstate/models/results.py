"""Result envelopes returned by operations.

The envelope is the authoritative result of a run; the event stream is
advisory only.
"""

from pydantic import Field

from .base import CamelCaseModel
from .discovery import DiscoveryEntry
from .runs import ManifestRef
from .runs import RunAction


class ErrorDetail(CamelCaseModel):
    """Structured error object; never carries raw exception text or tracebacks."""

    code: str = Field(description="Stable error code")
    message: str = Field(description="Human readable summary")
    detail: dict = Field(default_factory=dict, description="Machine readable context")
    remediation: str | None = Field(default=None, description="Suggested next step")


class VerifySummary(CamelCaseModel):
    passed: int = Field(default=0, alias="pass")
    failed: int = Field(default=0, alias="fail")
    apps_checked: int = 0
    verifiers_checked: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed


class ExportSummary(CamelCaseModel):
    exported: int = 0
    skipped: int = 0
    failed: int = 0
    warned: int = 0
    dry_run: bool = False


class DiscoverySummary(CamelCaseModel):
    total: int = 0
    path: int = 0
    registry: int = 0
    owned: int = 0
    unowned: int = 0


class OperationResult(CamelCaseModel):
    """Fields shared by every operation envelope."""

    manifest: ManifestRef | None = None
    run_id: str
    state_file: str
    log_file: str | None = None
    events_file: str | None = None
    success: bool = True
    error: ErrorDetail | None = None


class VerifyResult(OperationResult):
    summary: VerifySummary = Field(default_factory=VerifySummary)
    results: list[RunAction] = Field(default_factory=list)


class ExportResult(OperationResult):
    summary: ExportSummary = Field(default_factory=ExportSummary)
    results: list[RunAction] = Field(default_factory=list)
    export_dir: str


class DiscoveryResult(OperationResult):
    summary: DiscoverySummary = Field(default_factory=DiscoverySummary)
    discoveries: list[DiscoveryEntry] = Field(default_factory=list)
    report_file: str | None = None
    template_file: str | None = None
