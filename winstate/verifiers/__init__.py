"""Verifiers for explicit manifest checks."""

from .checks import VERIFIERS
from .checks import CheckResult
from .checks import VerifyCheck
from .checks import VerifyKind
from .checks import build_check

__all__ = [
    "VERIFIERS",
    "CheckResult",
    "VerifyCheck",
    "VerifyKind",
    "build_check",
]
