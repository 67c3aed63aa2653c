"""
List and update command implementations.

Prints the versions of Xcode available to install.
"""

import logging

from xcodeskit.cli.utils import format_markers
from xcodeskit.core.outcome import Outcome
from xcodeskit.toolchain.catalog import mark_installed

logger = logging.getLogger(__name__)


def print_available(context):
    """Print every catalog entry ascending with Installed/Selected markers."""
    installed = context.store.installed_toolchains()
    selected = context.selection.selected()
    entries = mark_installed(context.catalog.available_entries(), installed)

    if not entries:
        logger.info("No versions available; run `xcodes update` to fetch the catalog")
        return

    for entry in entries:
        is_selected = selected is not None and selected.version.is_equivalent(
            entry.version
        )
        print(
            entry.version.description
            + format_markers(
                "Installed" if entry.installed else "",
                "Selected" if is_selected else "",
            )
        )


async def run(args, context) -> Outcome:
    """List available versions, refreshing a missing or stale catalog first."""
    if context.catalog.should_refresh():
        await context.catalog.refresh()
    print_available(context)
    return Outcome.success()


async def run_update(args, context) -> Outcome:
    """Refresh the catalog unconditionally, then list it."""
    await context.catalog.refresh()
    print_available(context)
    return Outcome.success()
