"""
Wiring of collaborators for one CLI invocation.

Everything a command needs is constructed here from the configuration and
passed down explicitly; nothing is held in module-level globals.
"""

import sys
from dataclasses import dataclass
from typing import Optional

from xcodeskit.core.config import Configuration
from xcodeskit.core.locking import LockManager
from xcodeskit.core.process import AsyncioProcessRunner, ProcessRunner
from xcodeskit.toolchain.catalog import Catalog
from xcodeskit.toolchain.installed import ToolchainStore
from xcodeskit.toolchain.linking import ActiveToolchainLink
from xcodeskit.toolchain.pipeline import InstallPipeline
from xcodeskit.toolchain.selection import Chooser, SelectionManager
from xcodeskit.toolchain.uninstaller import Uninstaller
from xcodeskit.toolchain.verifier import ToolchainVerifier


@dataclass
class AppContext:
    """Collaborators shared by the subcommands of one invocation."""

    configuration: Configuration
    catalog: Catalog
    store: ToolchainStore
    link: ActiveToolchainLink
    pipeline: InstallPipeline
    selection: SelectionManager
    uninstaller: Uninstaller
    interactive: bool


def build_context(
    configuration: Configuration,
    runner: Optional[ProcessRunner] = None,
    chooser: Optional[Chooser] = None,
    interactive: Optional[bool] = None,
) -> AppContext:
    """
    Construct the collaborators for one invocation.

    Args:
        configuration: Effective configuration
        runner: Process runner (default: asyncio subprocesses)
        chooser: Interactive chooser for ``select`` without arguments
        interactive: Whether stdin is a terminal (default: detected)
    """
    runner = runner or AsyncioProcessRunner()
    if interactive is None:
        interactive = sys.stdin is not None and sys.stdin.isatty()

    lock_manager = LockManager(configuration.lock_dir)
    catalog = Catalog(
        configuration.catalog_cache_path,
        catalog_url=configuration.catalog_url,
        max_age_hours=configuration.catalog_max_age_hours,
        timeout=configuration.download_timeout,
    )
    store = ToolchainStore(configuration.install_directory, lock_manager)
    link = ActiveToolchainLink(configuration.active_link)
    pipeline = InstallPipeline(
        catalog,
        store,
        runner,
        ToolchainVerifier(runner, configuration.verify_commands),
        configuration.downloads_dir,
        download_timeout=configuration.download_timeout,
        keep_archives=configuration.keep_archives,
    )
    selection = SelectionManager(
        store,
        link,
        lock_manager,
        runner=runner,
        select_command=configuration.select_command,
        chooser=chooser,
    )

    return AppContext(
        configuration=configuration,
        catalog=catalog,
        store=store,
        link=link,
        pipeline=pipeline,
        selection=selection,
        uninstaller=Uninstaller(store, link),
        interactive=interactive,
    )
