"""
Version command implementation.
"""

from xcodeskit import __version__
from xcodeskit.core.outcome import Outcome


async def run(args, context) -> Outcome:
    """Print the version of xcodeskit itself."""
    print(__version__)
    return Outcome.success()
