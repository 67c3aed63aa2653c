"""
File system utilities for xcodeskit.

This module provides:
- Archive extraction (zip, tar.gz, tar.xz, tar.bz2) with traversal checks
- Safe file operations (atomic writes, guarded deletion)
- Path utilities

Proprietary archive formats (.xip) are not handled here; they are expanded by
an external process in the install pipeline.
"""

import os
import shutil
import stat
import sys
import tarfile
import tempfile
import threading
import zipfile
from pathlib import Path
from typing import Callable, Optional, Union

from xcodeskit.core.exceptions import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    OperationCancelledError,
    UnsupportedArchiveFormat,
)

IN_PROCESS_ARCHIVE_SUFFIXES = (".zip", ".tar.gz", ".tgz", ".tar.xz", ".tar.bz2", ".tbz2")


# ============================================================================
# Path Utilities
# ============================================================================


def is_relative_to(path: Path, parent: Path) -> bool:
    """
    Check if path is relative to parent.

    Args:
        path: Path to check
        parent: Potential parent path

    Returns:
        True if path is under parent, False otherwise
    """
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False


def is_in_process_archive(path: Union[str, Path]) -> bool:
    """Return True if the archive can be extracted without external tools."""
    return Path(path).name.lower().endswith(IN_PROCESS_ARCHIVE_SUFFIXES)


# ============================================================================
# Archive Extraction
# ============================================================================


def _validate_archive_path(path: str, destination: Path) -> None:
    """
    Validate that an archive member path is safe to extract.

    Raises:
        InsecureArchiveError: If path attempts directory traversal
    """
    member_path = (destination / path).resolve()

    if not is_relative_to(member_path, destination.resolve()):
        raise InsecureArchiveError(
            f"Archive member '{path}' attempts directory traversal. "
            "This is a security risk and extraction has been blocked."
        )


def _check_cancelled(cancel_event: Optional[threading.Event], archive_path: Path) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(f"Extraction of {archive_path.name} cancelled")


def extract_archive(
    archive_path: Union[str, Path],
    destination: Union[str, Path],
    progress_callback: Optional[Callable[[int, int], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    """
    Extract an archive to a destination directory.

    Supported formats:
    - .zip
    - .tar.gz, .tgz
    - .tar.xz
    - .tar.bz2, .tbz2

    Args:
        archive_path: Path to the archive file
        destination: Directory to extract to
        progress_callback: Optional callback(current, total) for progress
        cancel_event: Checked between members; once set extraction stops

    Raises:
        UnsupportedArchiveFormat: If archive format is not recognized
        ArchiveExtractionError: If extraction fails
        InsecureArchiveError: If archive contains malicious paths
        OperationCancelledError: If cancel_event was set
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    destination.mkdir(parents=True, exist_ok=True)

    archive_name = archive_path.name.lower()

    try:
        if archive_name.endswith(".zip"):
            _extract_zip(archive_path, destination, progress_callback, cancel_event)
        elif archive_name.endswith((".tar.gz", ".tgz")):
            _extract_tar(archive_path, destination, "r:gz", progress_callback, cancel_event)
        elif archive_name.endswith(".tar.xz"):
            _extract_tar(archive_path, destination, "r:xz", progress_callback, cancel_event)
        elif archive_name.endswith((".tar.bz2", ".tbz2")):
            _extract_tar(archive_path, destination, "r:bz2", progress_callback, cancel_event)
        else:
            raise UnsupportedArchiveFormat(
                f"Unsupported archive format: {archive_path.name}. "
                "Supported: .xip, .zip, .tar.gz, .tar.xz, .tar.bz2"
            )
    except (InsecureArchiveError, UnsupportedArchiveFormat, OperationCancelledError):
        raise
    except Exception as e:
        raise ArchiveExtractionError(f"Failed to extract {archive_path}: {e}") from e


def _extract_zip(
    archive_path: Path,
    destination: Path,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    """
    Extract a ZIP archive.

    Unix permission bits stored in the archive are restored and symbolic
    links are recreated as links.
    """
    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()
        total = len(members)

        # Validate all paths first
        for member in members:
            _validate_archive_path(member.filename, destination)

        for i, member in enumerate(members):
            _check_cancelled(cancel_event, archive_path)
            mode = member.external_attr >> 16
            if stat.S_ISLNK(mode):
                _extract_zip_symlink(zf, member, destination)
            else:
                extracted = zf.extract(member, destination)
                # Directory modes are left alone so later members can be written
                if stat.S_IMODE(mode) and not member.is_dir():
                    os.chmod(extracted, stat.S_IMODE(mode))
            if progress_callback:
                progress_callback(i + 1, total)


def _extract_zip_symlink(zf: zipfile.ZipFile, member: zipfile.ZipInfo, destination: Path) -> None:
    """
    Recreate a symlink member; its target must stay inside destination.

    Raises:
        InsecureArchiveError: If the link points outside destination
    """
    target = zf.read(member).decode("utf-8")
    link_path = destination / member.filename.rstrip("/")

    if os.path.isabs(target) or not is_relative_to(
        (link_path.parent / target).resolve(), destination.resolve()
    ):
        raise InsecureArchiveError(
            f"Archive member '{member.filename}' links outside the archive: {target}"
        )

    link_path.parent.mkdir(parents=True, exist_ok=True)
    os.symlink(target, link_path)


def _extract_tar(
    archive_path: Path,
    destination: Path,
    mode: str,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    """Extract a tar archive with specified compression."""
    with tarfile.open(archive_path, mode) as tar:
        members = tar.getmembers()
        total = len(members)

        for member in members:
            _validate_archive_path(member.name, destination)

        for i, member in enumerate(members):
            _check_cancelled(cancel_event, archive_path)
            # Paths were validated above for interpreters without extraction filters
            if sys.version_info >= (3, 12):
                tar.extract(member, destination, filter="data")
            else:
                tar.extract(member, destination)
            if progress_callback:
                progress_callback(i + 1, total)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file in same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree('/tmp/build', require_prefix='/tmp')
        >>> safe_rmtree('/usr/bin', require_prefix='/home')  # ValueError
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not is_relative_to(path, require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def make_staging_dir(parent: Path, prefix: str = ".xcodeskit-staging-") -> Path:
    """
    Create a hidden staging directory inside parent.

    Staging next to the final location keeps the final rename on one
    filesystem.
    """
    parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=prefix, dir=parent))


def rename_no_replace(source: Path, destination: Path) -> None:
    """
    Rename source onto destination, refusing to replace an existing entry.

    Raises:
        FileExistsError: If destination already exists
        OSError: If the rename fails
    """
    if os.path.lexists(destination):
        raise FileExistsError(f"Destination already exists: {destination}")
    os.rename(source, destination)
