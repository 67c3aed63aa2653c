"""
Installed toolchain bundles.

The installed set is whatever valid bundles sit directly in the install
directory. Nothing else records it, so every read is a fresh snapshot and
every change is a single rename: a bundle either is fully present under its
final name or not visible at all.
"""

import logging
import os
import plistlib
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from xcodeskit.core.exceptions import (
    FilesystemError,
    InvalidPathError,
    InvalidVersionError,
)
from xcodeskit.core.filesystem import rename_no_replace, safe_rmtree
from xcodeskit.core.locking import LockManager
from xcodeskit.toolchain.version import BUNDLE_SUFFIX, Version

logger = logging.getLogger(__name__)

VERSION_PLIST = Path("Contents") / "version.plist"
TRASH_PREFIX = ".xcodeskit-trash-"


@dataclass(frozen=True)
class InstalledToolchain:
    """A version plus its on-disk bundle."""

    version: Version
    path: Path


def is_toolchain_bundle(path: Path) -> bool:
    """A bundle is a ``*.app`` directory containing Contents/version.plist."""
    return (
        path.name.endswith(BUNDLE_SUFFIX)
        and path.is_dir()
        and (path / VERSION_PLIST).is_file()
    )


def read_bundle_version(path: Path) -> Optional[Version]:
    """
    Determine a bundle's version.

    The bundle name (``Xcode-11.0.0-Beta.7.app``) wins because it carries the
    pre-release label; otherwise CFBundleShortVersionString from
    Contents/version.plist is used.
    """
    version = Version.from_bundle_name(path.name)
    if version is not None:
        return version.filled()

    try:
        with open(path / VERSION_PLIST, "rb") as f:
            info = plistlib.load(f)
        short_version = info.get("CFBundleShortVersionString")
        if short_version:
            return Version.parse(str(short_version)).filled()
    except (OSError, ValueError, AttributeError, InvalidVersionError) as e:
        logger.debug(f"Could not read version of {path}: {e}")
    return None


def load_installed_toolchain(path: Path) -> InstalledToolchain:
    """
    Validate an explicit bundle path.

    Raises:
        InvalidPathError: If path doesn't exist, isn't a bundle or has no version
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise InvalidPathError(path)
    if not is_toolchain_bundle(path):
        raise InvalidPathError(path, "is not an Xcode bundle")
    version = read_bundle_version(path)
    if version is None:
        raise InvalidPathError(path, "has no readable version")
    return InstalledToolchain(version=version, path=path)


class ToolchainStore:
    """Filesystem view of the install directory."""

    def __init__(self, install_directory: Path, lock_manager: LockManager):
        self.install_directory = Path(install_directory)
        self.lock_manager = lock_manager

    def installed_toolchains(self) -> List[InstalledToolchain]:
        """
        Snapshot of installed toolchains, sorted by version ascending.

        Hidden entries (staging and trash directories) are never listed.
        """
        if not self.install_directory.is_dir():
            return []

        toolchains = []
        for entry in self.install_directory.iterdir():
            if entry.name.startswith(".") or not is_toolchain_bundle(entry):
                continue
            version = read_bundle_version(entry)
            if version is None:
                logger.debug(f"Skipping bundle without version: {entry}")
                continue
            toolchains.append(InstalledToolchain(version=version, path=entry))

        return sorted(toolchains, key=lambda t: (t.version.sort_key(), t.path.name))

    def find_installed(self, version: Version) -> Optional[InstalledToolchain]:
        """Installed toolchain equivalent to version, if any."""
        for toolchain in self.installed_toolchains():
            if toolchain.version.is_equivalent(version):
                return toolchain
        return None

    def destination_for(self, version: Version) -> Path:
        return self.install_directory / version.filled().bundle_name

    def place_atomically(self, source: Path, destination: Path) -> InstalledToolchain:
        """
        Move a fully prepared bundle to its final name in one rename.

        The destination is re-checked under the install lock immediately
        before the rename.

        Raises:
            FileExistsError: If destination appeared in the meantime
            InvalidPathError: If source is not a bundle
            FilesystemError: If the rename fails
        """
        if not is_toolchain_bundle(source):
            raise InvalidPathError(source, "is not an Xcode bundle")

        with self.lock_manager.install_lock():
            try:
                rename_no_replace(source, destination)
            except FileExistsError:
                raise
            except OSError as e:
                raise FilesystemError(
                    f"Could not move {source} to {destination}: {e}"
                ) from e

        logger.debug(f"Placed {destination}")
        version = read_bundle_version(destination)
        return InstalledToolchain(version=version, path=destination)

    def remove(self, toolchain: InstalledToolchain) -> None:
        """
        Remove an installed bundle.

        The bundle is first renamed to a hidden trash name so listings never
        see it half deleted.

        Raises:
            FilesystemError: If the bundle cannot be moved or deleted
        """
        trash = self.install_directory / f"{TRASH_PREFIX}{os.getpid()}-{toolchain.path.name}"
        with self.lock_manager.install_lock():
            try:
                os.rename(toolchain.path, trash)
            except OSError as e:
                raise FilesystemError(f"Could not remove {toolchain.path}: {e}") from e

        safe_rmtree(trash, require_prefix=self.install_directory)
        logger.debug(f"Removed {toolchain.path}")
