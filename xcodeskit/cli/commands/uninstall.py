"""
Uninstall command implementation.
"""

from xcodeskit.core.outcome import Outcome


async def run(args, context) -> Outcome:
    """Uninstall the installed Xcode matching the version tokens."""
    toolchain = await context.uninstaller.uninstall(" ".join(args.version))
    return Outcome.success(f"Xcode {toolchain.version} uninstalled from {toolchain.path}")
