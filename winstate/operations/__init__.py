"""Reconciliation operations.

Public Interface:
    - run_verify: Compare a resolved manifest against the live system
    - run_export: Capture live config files into an export folder
    - run_discovery: Detect software and cross-check driver ownership
    - RunStateStore: Write-once run-state records
"""

from .discovery import run_discovery
from .export import run_export
from .runs import RunStateStore
from .verify import run_verify

__all__ = [
    "RunStateStore",
    "run_discovery",
    "run_export",
    "run_verify",
]
