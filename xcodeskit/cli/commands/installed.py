"""
Installed command implementation.

Lists the installed versions of Xcode.
"""

from xcodeskit.cli.utils import format_markers
from xcodeskit.core.outcome import Outcome


async def run(args, context) -> Outcome:
    """Print each installed Xcode with its path, marking the selected one."""
    selected = context.selection.selected()

    for toolchain in context.store.installed_toolchains():
        is_selected = selected is not None and selected.path == toolchain.path
        print(
            f"{toolchain.version.description}\t{toolchain.path}"
            f"{format_markers('Selected' if is_selected else '')}"
        )

    return Outcome.success()
