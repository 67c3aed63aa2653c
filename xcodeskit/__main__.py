"""
Entry point for running xcodeskit as a module.

Usage: python -m xcodeskit [command] [options]
"""

from xcodeskit.cli.parser import main

if __name__ == "__main__":
    main()
