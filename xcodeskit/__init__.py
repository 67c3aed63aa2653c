"""
xcodeskit - manage the installed versions of Xcode on a single machine.
"""

try:
    from importlib.metadata import version as _package_version

    __version__ = _package_version("xcodeskit")
except Exception:
    __version__ = "0.1.0"

__all__ = ["__version__"]
