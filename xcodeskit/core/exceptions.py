"""
Centralized exception hierarchy for xcodeskit.

Every failure that can reach the command line belongs to one of a small set of
kinds (see FailureKind). Components raise these exceptions; only the CLI
dispatcher turns them into messages and exit codes.
"""

from enum import Enum
from typing import List, Optional, Sequence


class FailureKind(Enum):
    """User-facing failure categories."""

    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    INVALID_PATH = "invalid_path"
    EXTERNAL_PROCESS = "external_process"
    IO = "io"
    NONINTERACTIVE_SELECTION = "noninteractive_selection"
    INTERNAL = "internal"


# ============================================================================
# Base Exceptions
# ============================================================================


class XcodesKitError(Exception):
    """Base exception for all xcodeskit errors."""

    kind = FailureKind.INTERNAL

    def __init__(self, message: str = ""):
        super().__init__(message)
        # Set by InstallPipeline when the error escapes one of its stages
        self.stage: Optional[str] = None


# ============================================================================
# Resolution Exceptions
# ============================================================================


class NotFoundError(XcodesKitError):
    """No catalog or installed entry matches the requested version."""

    kind = FailureKind.NOT_FOUND


class InvalidVersionError(NotFoundError):
    """Version token could not be parsed."""

    pass


class AmbiguousVersionError(XcodesKitError):
    """Several entries match the requested version equally well."""

    kind = FailureKind.AMBIGUOUS

    def __init__(self, token: str, candidates: Sequence[str]):
        self.token = token
        self.candidates: List[str] = list(candidates)
        super().__init__(
            f"'{token}' matches more than one version: {', '.join(self.candidates)}"
        )


class InvalidPathError(XcodesKitError):
    """Explicit path does not exist or is not a toolchain bundle/archive."""

    kind = FailureKind.INVALID_PATH

    def __init__(self, path, reason: str = "does not exist"):
        self.path = path
        super().__init__(f"Invalid path {path}: {reason}")


# ============================================================================
# Execution Exceptions
# ============================================================================


class ExternalProcessError(XcodesKitError):
    """A spawned process exited with a non-zero status."""

    kind = FailureKind.EXTERNAL_PROCESS

    def __init__(
        self,
        command: Sequence[str],
        exit_status: int,
        stdout: str = "",
        stderr: str = "",
    ):
        self.command: List[str] = [str(part) for part in command]
        self.exit_status = exit_status
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(
            f"Failed executing: `{' '.join(self.command)}` ({exit_status})"
        )


class IOFailure(XcodesKitError):
    """Download or filesystem error not tied to a specific process."""

    kind = FailureKind.IO


class DownloadError(IOFailure):
    """Raised when a download fails."""

    pass


class ChecksumError(DownloadError):
    """Raised when a downloaded file does not match its expected checksum."""

    pass


class CatalogError(IOFailure):
    """Catalog could not be fetched, parsed or cached."""

    pass


class FilesystemError(IOFailure):
    """Base exception for filesystem operations."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


class VerificationError(IOFailure):
    """Unpacked toolchain failed a structural check."""

    pass


class LockTimeoutError(IOFailure):
    """Raised when a state lock cannot be acquired within timeout."""

    pass


class OperationCancelledError(IOFailure):
    """A blocking download or extraction was told to stop."""

    pass


# ============================================================================
# Selection Exceptions
# ============================================================================


class NoninteractiveSelectionError(XcodesKitError):
    """Interactive selection requested without a usable terminal."""

    kind = FailureKind.NONINTERACTIVE_SELECTION

    def __init__(self, message: str = ""):
        super().__init__(
            message
            or "No version given and standard input is not a terminal; "
            "pass a version or path to select"
        )


# ============================================================================
# Orchestration Exceptions
# ============================================================================


class PipelineBusyError(XcodesKitError):
    """Raised when an install is requested while another one is running."""

    pass
