"""
Streaming HTTP download with progress tracking and checksum verification.

Failures are surfaced to the caller as DownloadError; nothing is retried.
"""

import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

from xcodeskit.core.exceptions import (
    ChecksumError,
    DownloadError,
    OperationCancelledError,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second

    def __str__(self) -> str:
        return format_progress(self)


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    timeout: int = 30,
    session: Optional[requests.Session] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Path:
    """
    Download file from URL to destination.

    The body is streamed into a ``.part`` file next to the destination and
    renamed into place once complete, so an interrupted download never looks
    finished.

    Args:
        url: URL to download from
        destination: Local path to save file
        expected_sha256: Expected SHA256 hash (verified during download)
        progress_callback: Optional callback for progress updates
        timeout: Request timeout in seconds
        session: Optional requests session
        cancel_event: Checked between chunks; once set the download stops

    Returns:
        Path to downloaded file

    Raises:
        DownloadError: If the request fails
        ChecksumError: If checksum doesn't match expected value
        OperationCancelledError: If cancel_event was set
        ValueError: If URL or destination is invalid
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    if destination.exists() and expected_sha256:
        logger.info(f"File exists, verifying checksum: {destination}")
        if verify_checksum(destination, expected_sha256):
            logger.info("Checksum verified, skipping download")
            return destination
        logger.warning("Checksum mismatch, re-downloading")
        destination.unlink()

    partial = destination.with_name(destination.name + ".part")
    http = session or requests

    logger.debug(f"Downloading from {url}")

    try:
        response = http.get(url, stream=True, timeout=timeout, allow_redirects=True)
        response.raise_for_status()
    except RequestException as e:
        raise DownloadError(f"Download of {url} failed: {e}") from e

    content_length = response.headers.get("content-length")
    total_size = int(content_length) if content_length else 0

    hasher = hashlib.sha256() if expected_sha256 else None
    downloaded = 0
    start_time = time.time()
    last_progress_time = start_time

    try:
        with response, open(partial, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if cancel_event is not None and cancel_event.is_set():
                    raise OperationCancelledError(f"Download of {url} cancelled")
                if not chunk:
                    continue
                f.write(chunk)
                downloaded += len(chunk)
                if hasher:
                    hasher.update(chunk)

                # Report progress at most twice a second
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or downloaded == total_size
                ):
                    elapsed = current_time - start_time
                    progress_callback(
                        DownloadProgress(
                            bytes_downloaded=downloaded,
                            total_bytes=total_size if total_size > 0 else downloaded,
                            percentage=(downloaded / total_size * 100)
                            if total_size > 0
                            else 0,
                            speed_bps=downloaded / elapsed if elapsed > 0 else 0,
                        )
                    )
                    last_progress_time = current_time
    except OperationCancelledError:
        partial.unlink(missing_ok=True)
        raise
    except RequestException as e:
        partial.unlink(missing_ok=True)
        raise DownloadError(f"Download of {url} interrupted: {e}") from e
    except OSError as e:
        partial.unlink(missing_ok=True)
        raise DownloadError(f"Could not write {partial}: {e}") from e

    if hasher and expected_sha256:
        actual_hash = hasher.hexdigest()
        if actual_hash.lower() != expected_sha256.lower():
            partial.unlink(missing_ok=True)
            raise ChecksumError(
                f"Checksum mismatch for {destination.name}: "
                f"expected {expected_sha256}, got {actual_hash}"
            )
        logger.info("Checksum verified successfully")

    partial.replace(destination)
    logger.info(f"Download complete: {destination}")
    return destination


def verify_checksum(file_path: Path, expected_sha256: str) -> bool:
    """
    Verify file SHA256 checksum.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)

    return hasher.hexdigest().lower() == expected_sha256.lower()


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s"
        )
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"
