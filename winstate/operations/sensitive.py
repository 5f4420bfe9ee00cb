"""Sensitive-path policy for export.

The policy only ever warns: matching entries are still exported, flagged and
counted, never silently dropped.
"""

import fnmatch
from pathlib import Path

# Matched case-insensitively against every path component and against the full path
DEFAULT_SENSITIVE_PATTERNS = (
    ".ssh",
    ".gnupg",
    ".aws",
    ".azure",
    ".kube",
    ".docker/config.json",
    ".git-credentials",
    ".netrc",
    "_netrc",
    "*.pem",
    "*.key",
    "*.pfx",
    "*.p12",
    "id_rsa*",
    "id_ed25519*",
    "id_ecdsa*",
    "login data",
    "cookies",
    "*.kdbx",
    "credentials",
    "credentials.json",
    "*secret*",
    "*token*",
)


class SensitivePathPolicy:
    """Flags paths that likely hold secrets."""

    def __init__(self, extra_patterns: list[str] | None = None) -> None:
        self.patterns = [p.lower() for p in DEFAULT_SENSITIVE_PATTERNS] + [p.lower() for p in extra_patterns or []]

    def evaluate(self, path: Path) -> list[str]:
        """Return zero or more warnings for path."""
        normalized = str(path).replace("\\", "/").lower()
        parts = [part for part in normalized.split("/") if part]

        warnings = []
        for pattern in self.patterns:
            if "/" in pattern:
                matched = normalized.endswith("/" + pattern) or fnmatch.fnmatch(normalized, f"*/{pattern}")
            else:
                matched = any(fnmatch.fnmatch(part, pattern) for part in parts)
            if matched:
                warnings.append(f"path matches sensitive pattern '{pattern}': {path}")
        return warnings
