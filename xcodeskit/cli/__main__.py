"""
Entry point for running the xcodeskit CLI as a module.

Usage: python -m xcodeskit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
