"""
Directory layout for xcodeskit state.

State Directory (~/.xcodeskit/ unless XCODESKIT_HOME is set):
    - config.yaml     : Optional user configuration
    - catalog.json    : Cached catalog of available versions
    - downloads/      : Downloaded archives
    - lock/           : Concurrent access control files
    - active          : Symlink to the selected toolchain bundle

Toolchain bundles themselves live in the configured install directory
(/Applications on macOS).
"""

import os
import sys
from pathlib import Path


def get_global_state_dir() -> Path:
    """
    Get the xcodeskit state directory.

    Returns:
        Path: $XCODESKIT_HOME if set, otherwise ~/.xcodeskit
    """
    override = os.environ.get("XCODESKIT_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".xcodeskit"


def get_default_install_dir() -> Path:
    """Default directory that holds installed toolchain bundles."""
    if sys.platform == "darwin":
        return Path("/Applications")
    return Path.home() / "Applications"


def get_downloads_dir(state_dir: Path) -> Path:
    return state_dir / "downloads"


def get_lock_dir(state_dir: Path) -> Path:
    return state_dir / "lock"
