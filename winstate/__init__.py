"""winstate - declarative desired-state reconciliation for Windows hosts.

Public Interface:
    Modules:
    - manifests: Profile overlay model (raw/resolved views, mutations)
    - operations: Verify, export and discovery engines plus run state
    - drivers: Package manager integrations
    - verifiers: System condition predicates
    - config: Configuration loading
    - storage: Path resolution
"""

from .context import RunContext
from .errors import WinstateError

__version__ = "0.3.0"

__all__ = [
    "RunContext",
    "WinstateError",
    "__version__",
]
