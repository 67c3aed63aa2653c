"""
xcodeskit CLI module.

This module provides the `xcodes` command-line interface.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
