"""
Core infrastructure for xcodeskit: configuration, errors, filesystem,
downloads, process execution and locking.
"""

from .exceptions import (
    AmbiguousVersionError,
    ExternalProcessError,
    FailureKind,
    InvalidPathError,
    IOFailure,
    NoninteractiveSelectionError,
    NotFoundError,
    XcodesKitError,
)
from .outcome import Outcome

__all__ = [
    "AmbiguousVersionError",
    "ExternalProcessError",
    "FailureKind",
    "InvalidPathError",
    "IOFailure",
    "NoninteractiveSelectionError",
    "NotFoundError",
    "Outcome",
    "XcodesKitError",
]
