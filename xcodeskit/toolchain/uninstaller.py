"""
Uninstall orchestration.
"""

import asyncio
import logging
from typing import Union

from xcodeskit.toolchain.installed import InstalledToolchain, ToolchainStore
from xcodeskit.toolchain.linking import ActiveToolchainLink
from xcodeskit.toolchain.matcher import VersionQuery, resolve

logger = logging.getLogger(__name__)


class Uninstaller:
    """Removes installed toolchains resolved from a version or path."""

    def __init__(self, store: ToolchainStore, link: ActiveToolchainLink):
        self.store = store
        self.link = link

    async def uninstall(self, query: Union[VersionQuery, str]) -> InstalledToolchain:
        """
        Remove the installed toolchain matching query.

        Only installed toolchains are candidates. If the active pointer
        targeted the removed bundle, the pointer is cleared.

        Raises:
            NotFoundError: If nothing installed matches
            AmbiguousVersionError: If several installed toolchains tie
            FilesystemError: If removal fails
        """
        toolchain = resolve(query, self.store.installed_toolchains())
        was_selected = self.link.points_to(toolchain.path)

        await asyncio.to_thread(self.store.remove, toolchain)

        if was_selected and self.link.clear():
            logger.warning(
                f"Xcode {toolchain.version} was selected; no Xcode is selected now"
            )

        logger.debug(f"Xcode {toolchain.version} uninstalled")
        return toolchain
