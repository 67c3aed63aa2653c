"""
The active toolchain pointer.

The selected toolchain is recorded as a symlink (default
``~/.xcodeskit/active``) pointing at an installed bundle. The link is replaced
atomically: a temporary link is created beside it and renamed over it, so
readers always see either the old or the new target.
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ActiveToolchainLink:
    """Reads and swaps the active-toolchain symlink."""

    def __init__(self, link_path: Path):
        self.link_path = Path(link_path)

    def resolve(self) -> Optional[Path]:
        """
        Target of the link, or None when nothing is selected.

        A link whose target has disappeared counts as nothing selected.
        """
        if not self.link_path.is_symlink():
            return None

        target = Path(os.readlink(self.link_path))
        if not target.is_absolute():
            target = self.link_path.parent / target
        if not target.exists():
            logger.debug(f"Active link points at missing {target}")
            return None
        return target

    def point_to(self, target: Path) -> None:
        """
        Atomically point the link at target.

        Raises:
            FileNotFoundError: If target doesn't exist
            FileExistsError: If link_path exists and is not a symlink
            OSError: If the link cannot be created
        """
        target = Path(target).absolute()
        if not target.exists():
            raise FileNotFoundError(f"Target does not exist: {target}")

        if self.link_path.exists() and not self.link_path.is_symlink():
            raise FileExistsError(
                f"{self.link_path} exists and is not a symlink; refusing to replace it"
            )

        self.link_path.parent.mkdir(parents=True, exist_ok=True)
        temp_link = self.link_path.with_name(f".{self.link_path.name}.{os.getpid()}.tmp")
        if temp_link.is_symlink():
            temp_link.unlink()

        os.symlink(target, temp_link, target_is_directory=True)
        try:
            os.replace(temp_link, self.link_path)
        except OSError:
            temp_link.unlink(missing_ok=True)
            raise
        logger.debug(f"Active link: {self.link_path} -> {target}")

    def clear(self) -> bool:
        """Remove the link; returns True if a link was removed."""
        if not self.link_path.is_symlink():
            return False
        self.link_path.unlink()
        logger.debug(f"Removed active link: {self.link_path}")
        return True

    def points_to(self, path: Path) -> bool:
        """True if the link currently targets path (dangling links included)."""
        if not self.link_path.is_symlink():
            return False
        target = Path(os.readlink(self.link_path))
        if not target.is_absolute():
            target = self.link_path.parent / target
        return os.path.abspath(target) == os.path.abspath(path)
