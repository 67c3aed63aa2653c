"""
Shared utilities for CLI commands.

Provides common output helpers used across multiple CLI commands to ensure
consistent behavior.
"""

import sys
from typing import Optional


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)



def format_markers(*markers: str) -> str:
    """
    Format listing markers.

    Example:
        >>> format_markers("Installed", "Selected")
        ' (Installed, Selected)'
        >>> format_markers("", "")
        ''
    """
    present = [marker for marker in markers if marker]
    if not present:
        return ""
    return f" ({', '.join(present)})"
