"""
xcodeskit CLI argument parser.

This module implements the `xcodes` command-line interface using argparse.
Each invocation parses arguments, builds its collaborators, runs exactly one
command on an asyncio event loop and turns the result into an exit code.
"""

import argparse
import asyncio
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from xcodeskit import __version__
from xcodeskit.cli.context import build_context
from xcodeskit.cli.commands.select import prompt_for_toolchain
from xcodeskit.cli.utils import print_error
from xcodeskit.core.config import load_configuration
from xcodeskit.core.exceptions import FailureKind
from xcodeskit.core.outcome import EXIT_FAILURE, EXIT_INTERRUPTED, Outcome
from xcodeskit.core.process import ProcessRunner

logger = logging.getLogger(__name__)

# command -> (module, coroutine function)
COMMAND_MAP = {
    "install": ("xcodeskit.cli.commands.install", "run"),
    "installed": ("xcodeskit.cli.commands.installed", "run"),
    "list": ("xcodeskit.cli.commands.available", "run"),
    "update": ("xcodeskit.cli.commands.available", "run_update"),
    "select": ("xcodeskit.cli.commands.select", "run"),
    "uninstall": ("xcodeskit.cli.commands.uninstall", "run"),
    "version": ("xcodeskit.cli.commands.version", "run"),
}


class CLI:
    """xcodeskit command-line interface."""

    def __init__(
        self,
        runner: Optional[ProcessRunner] = None,
        interactive: Optional[bool] = None,
    ):
        """
        Initialize CLI with argument parser.

        Args:
            runner: Process runner handed to commands (default: asyncio subprocesses)
            interactive: Override terminal detection for ``select``
        """
        self.runner = runner
        self.interactive = interactive
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="xcodes",
            description="Manage the installed versions of Xcode",
            epilog='Use "xcodes COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"xcodeskit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ~/.xcodeskit/config.yaml)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_installed_command(subparsers)
        self._add_list_command(subparsers)
        self._add_select_command(subparsers)
        self._add_uninstall_command(subparsers)
        self._add_update_command(subparsers)
        self._add_version_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Download and install a specific version of Xcode",
            description="Download and install a specific version of Xcode",
            epilog='Example: xcodes install 11 Beta 7',
        )
        parser.add_argument(
            "version",
            nargs="+",
            help="Version to install (e.g. 10.2.1, 11 Beta 7)",
        )
        parser.add_argument(
            "--url",
            metavar="PATH",
            help="Install from a local archive instead of downloading",
        )

    def _add_installed_command(self, subparsers):
        """Add 'installed' subcommand."""
        subparsers.add_parser(
            "installed",
            help="List the versions of Xcode that are installed",
            description="List the versions of Xcode that are installed",
        )

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        subparsers.add_parser(
            "list",
            help="List all versions of Xcode that are available to install",
            description="List all versions of Xcode that are available to install",
        )

    def _add_select_command(self, subparsers):
        """Add 'select' subcommand."""
        parser = subparsers.add_parser(
            "select",
            help="Change the selected Xcode",
            description=(
                "Change the selected Xcode. Run without arguments to choose "
                "interactively, or give a version or an absolute path."
            ),
            epilog="Examples:\n  xcodes select 11.4.0\n  xcodes select /Applications/Xcode-11.4.0.app",
        )
        parser.add_argument(
            "version_or_path",
            nargs="*",
            help="Version or absolute path of the Xcode to select",
        )
        parser.add_argument(
            "--print-path",
            "-p",
            action="store_true",
            help="Print the path of the selected Xcode",
        )

    def _add_uninstall_command(self, subparsers):
        """Add 'uninstall' subcommand."""
        parser = subparsers.add_parser(
            "uninstall",
            help="Uninstall a specific version of Xcode",
            description="Uninstall a specific version of Xcode",
        )
        parser.add_argument(
            "version",
            nargs="+",
            help="Version to uninstall (e.g. 10.2.1, 11 Beta 7)",
        )

    def _add_update_command(self, subparsers):
        """Add 'update' subcommand."""
        subparsers.add_parser(
            "update",
            help="Update the list of available versions of Xcode",
            description="Refresh the catalog of available versions and list it",
        )

    def _add_version_command(self, subparsers):
        """Add 'version' subcommand."""
        subparsers.add_parser(
            "version",
            help="Print the version number of xcodeskit itself",
        )

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return EXIT_FAILURE

        try:
            outcome = self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return EXIT_INTERRUPTED

        self._report(outcome, parsed_args)
        return outcome.exit_code

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> Outcome:
        """
        Dispatch to the command handler and run it to completion.

        Args:
            args: Parsed arguments with command field

        Returns:
            Outcome of the command; errors are converted, never raised
        """
        target = COMMAND_MAP.get(args.command)
        if not target:
            return Outcome.from_error(RuntimeError(f"Unknown command: {args.command}"))

        module_name, function_name = target
        module = importlib.import_module(module_name)
        handler = getattr(module, function_name)

        try:
            configuration = load_configuration(args.config)
            context = build_context(
                configuration,
                runner=self.runner,
                chooser=prompt_for_toolchain,
                interactive=self.interactive,
            )
            return asyncio.run(handler(args, context))
        except Exception as e:
            outcome = Outcome.from_error(e)
            if outcome.kind is FailureKind.INTERNAL:
                logger.debug("Unexpected error", exc_info=True)
            return outcome

    def _report(self, outcome: Outcome, args):
        """Print the outcome message: successes to stdout, failures to stderr."""
        if outcome.ok:
            if outcome.message and not args.quiet:
                print(outcome.message)
            return

        details = None
        if outcome.kind is FailureKind.INTERNAL and not args.verbose:
            details = "Run with --verbose for details"
        print_error(outcome.render(), details)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
