"""
Install command implementation.

Downloads (or takes from --url) one Xcode archive and installs it.
"""

import logging
from pathlib import Path

from xcodeskit.core.outcome import Outcome

logger = logging.getLogger(__name__)


async def run(args, context) -> Outcome:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments (version tokens, url)
        context: AppContext for this invocation

    Returns:
        Success outcome; failures are raised
    """
    token = " ".join(args.version)
    source = Path(args.url).expanduser() if args.url else None
    logger.debug(f"Install requested: version={token!r} url={source}")

    result = await context.pipeline.install(token, source)
    toolchain = result.toolchain

    if result.already_installed:
        return Outcome.success(
            f"Xcode {toolchain.version} is already installed at {toolchain.path}"
        )
    return Outcome.success(
        f"Xcode {toolchain.version} has been installed to {toolchain.path}"
    )
