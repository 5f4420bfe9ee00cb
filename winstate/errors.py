"""Error taxonomy for winstate.

Input and configuration errors propagate to the caller as exceptions.
Item-level failures never raise past the item boundary; operations turn
them into result records instead.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Stable error codes used in result envelopes."""

    PROFILE_NOT_FOUND = "PROFILE_NOT_FOUND"
    MANIFEST_PARSE_ERROR = "MANIFEST_PARSE_ERROR"
    CYCLIC_INCLUDE = "CYCLIC_INCLUDE"
    PROFILE_NOT_MUTABLE = "PROFILE_NOT_MUTABLE"
    UNKNOWN_VERIFY_TYPE = "UNKNOWN_VERIFY_TYPE"
    DRIVER_ERROR = "DRIVER_ERROR"
    VERIFY_FAILED = "VERIFY_FAILED"
    EXPORT_FAILED = "EXPORT_FAILED"
    OUTPUT_WRITE_FAILED = "OUTPUT_WRITE_FAILED"


class WinstateError(Exception):
    """Base class for errors surfaced to the top-level caller."""

    code: ErrorCode = ErrorCode.MANIFEST_PARSE_ERROR
    remediation: str | None = None

    def __init__(self, message: str, remediation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if remediation is not None:
            self.remediation = remediation


class ProfileNotFoundError(WinstateError):
    """Raised when a profile or manifest path cannot be located."""

    code = ErrorCode.PROFILE_NOT_FOUND
    remediation = "Check the profile name and the configured profiles directory"


class ManifestParseError(WinstateError):
    """Raised when a manifest file is unreadable or malformed."""

    code = ErrorCode.MANIFEST_PARSE_ERROR
    remediation = "Fix the manifest syntax and field types"


class CyclicIncludeError(WinstateError):
    """Raised when an include chain revisits a profile already being resolved."""

    code = ErrorCode.CYCLIC_INCLUDE
    remediation = "Remove the include that closes the cycle"

    def __init__(self, chain: list[str]) -> None:
        self.chain = list(chain)
        super().__init__(f"cyclic include: {' -> '.join(self.chain)}")


class ProfileNotMutableError(WinstateError):
    """Raised when a mutation targets a folder or zip profile."""

    code = ErrorCode.PROFILE_NOT_MUTABLE
    remediation = "Create a bare overlay that includes this profile and edit the overlay instead"


class UnknownVerifyTypeError(WinstateError):
    """Raised when a verify entry names a type outside the closed verifier table."""

    code = ErrorCode.UNKNOWN_VERIFY_TYPE

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"unknown verify type: {type_name}")


class DriverError(WinstateError):
    """Raised when the package driver cannot produce its installed listing."""

    code = ErrorCode.DRIVER_ERROR
    remediation = "Make sure the package manager is installed and on PATH"
