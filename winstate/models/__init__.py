"""Models for winstate."""

from .discovery import DiscoveryEntry
from .discovery import DiscoveryMethod
from .manifest import AppEntry
from .manifest import ProfileFormat
from .manifest import ProfileLocation
from .manifest import RawManifest
from .manifest import ResolvedManifest
from .manifest import RestoreEntry
from .manifest import VerifyEntry
from .results import DiscoveryResult
from .results import ErrorDetail
from .results import ExportResult
from .results import VerifyResult
from .runs import ActionStatus
from .runs import ManifestRef
from .runs import RunAction
from .runs import RunState

__all__ = [
    "ActionStatus",
    "AppEntry",
    "DiscoveryEntry",
    "DiscoveryMethod",
    "DiscoveryResult",
    "ErrorDetail",
    "ExportResult",
    "ManifestRef",
    "ProfileFormat",
    "ProfileLocation",
    "RawManifest",
    "ResolvedManifest",
    "RestoreEntry",
    "RunAction",
    "RunState",
    "VerifyEntry",
    "VerifyResult",
]
