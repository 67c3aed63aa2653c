"""
Selection of the active toolchain.

SelectionManager is the only code that changes the active pointer. Targets
are resolved against a snapshot of the installed set taken when select() is
called; the chosen bundle is re-validated under the selection lock right
before the pointer moves, because the snapshot may be stale after waiting on
a prompt.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from xcodeskit.core.exceptions import (
    FilesystemError,
    InvalidPathError,
    NoninteractiveSelectionError,
    NotFoundError,
)
from xcodeskit.core.locking import LockManager
from xcodeskit.core.process import ProcessRunner, substitute_path
from xcodeskit.toolchain.installed import (
    InstalledToolchain,
    ToolchainStore,
    is_toolchain_bundle,
    load_installed_toolchain,
)
from xcodeskit.toolchain.linking import ActiveToolchainLink
from xcodeskit.toolchain.matcher import VersionQuery, parse_query, resolve

logger = logging.getLogger(__name__)

# Receives the installed toolchains (ascending) and the current selection
Chooser = Callable[
    [List[InstalledToolchain], Optional[InstalledToolchain]],
    Awaitable[InstalledToolchain],
]


@dataclass
class SelectionResult:
    """Selected toolchain and whether the active pointer changed."""

    toolchain: InstalledToolchain
    changed: bool


class SelectionManager:
    """
    Changes and reports the active toolchain.

    Args:
        store: Installed toolchains
        link: Active pointer
        lock_manager: Provides the selection lock
        runner: Runs select_command, if configured
        select_command: Optional argv run before the pointer moves, with
            ``{path}`` replaced by the bundle path (e.g. xcode-select -s)
        chooser: Coroutine used for interactive selection
    """

    def __init__(
        self,
        store: ToolchainStore,
        link: ActiveToolchainLink,
        lock_manager: LockManager,
        runner: Optional[ProcessRunner] = None,
        select_command: Optional[Sequence[str]] = None,
        chooser: Optional[Chooser] = None,
    ):
        self.store = store
        self.link = link
        self.lock_manager = lock_manager
        self.runner = runner
        self.select_command = list(select_command) if select_command else None
        self.chooser = chooser

    def selected(self) -> Optional[InstalledToolchain]:
        """The currently selected toolchain, or None."""
        target = self.link.resolve()
        if target is None:
            return None
        try:
            return load_installed_toolchain(target)
        except InvalidPathError as e:
            logger.debug(f"Active link target is not usable: {e}")
            return None

    async def select(
        self,
        target: Union[VersionQuery, str, None],
        interactive: bool,
    ) -> SelectionResult:
        """
        Select a toolchain by version, path or interactive choice.

        Args:
            target: Version token, absolute bundle path, parsed query, or
                None/empty to choose interactively
            interactive: Whether a terminal is available for choosing

        Returns:
            SelectionResult

        Raises:
            NoninteractiveSelectionError: No target and no usable terminal
            NotFoundError: No installed toolchain matches
            AmbiguousVersionError: Several installed toolchains tie
            InvalidPathError: Path is missing, not a bundle, or not installed
            ExternalProcessError: select_command failed
        """
        installed = self.store.installed_toolchains()

        if target is None or (isinstance(target, str) and not target.strip()):
            if not interactive or self.chooser is None:
                raise NoninteractiveSelectionError()
            if not installed:
                raise NotFoundError("No Xcode versions are installed")
            toolchain = await self.chooser(installed, self.selected())
        else:
            query = parse_query(target) if isinstance(target, str) else target
            if query.is_path:
                load_installed_toolchain(query.path)
            toolchain = resolve(query, installed)

        return await self._activate(toolchain)

    async def _activate(self, toolchain: InstalledToolchain) -> SelectionResult:
        async with self.lock_manager.selection_lock():
            if not is_toolchain_bundle(toolchain.path):
                raise InvalidPathError(toolchain.path, "is no longer installed")

            if self.link.points_to(toolchain.path) and self.link.resolve() is not None:
                logger.debug(f"Xcode {toolchain.version} is already selected")
                return SelectionResult(toolchain=toolchain, changed=False)

            if self.select_command:
                if self.runner is None:
                    raise RuntimeError("select_command configured without a process runner")
                result = await self.runner.run(
                    substitute_path(self.select_command, toolchain.path)
                )
                result.check()

            try:
                self.link.point_to(toolchain.path)
            except OSError as e:
                raise FilesystemError(f"Could not update active link: {e}") from e

        logger.debug(f"Selected Xcode {toolchain.version} at {toolchain.path}")
        return SelectionResult(toolchain=toolchain, changed=True)
