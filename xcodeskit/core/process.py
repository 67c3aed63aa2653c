"""
Capability interface for running external processes.

Pipeline and selection code only ever talk to a ProcessRunner, so tests can
substitute a fake runner and exercise failure handling without spawning real
tools.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from xcodeskit.core.exceptions import ExternalProcessError

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Exit status and captured output of one process."""

    command: List[str]
    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0

    def check(self) -> "ProcessResult":
        """
        Return self if the process succeeded.

        Raises:
            ExternalProcessError: If the exit status is non-zero
        """
        if not self.succeeded:
            raise ExternalProcessError(
                self.command, self.exit_status, self.stdout, self.stderr
            )
        return self


class ProcessRunner(ABC):
    """Runs a command and captures its exit status, stdout and stderr."""

    @abstractmethod
    async def run(
        self, command: Sequence[str], cwd: Optional[Path] = None
    ) -> ProcessResult:
        """Run command to completion without raising on non-zero exit."""


class AsyncioProcessRunner(ProcessRunner):
    """ProcessRunner backed by asyncio subprocesses."""

    async def run(
        self, command: Sequence[str], cwd: Optional[Path] = None
    ) -> ProcessResult:
        argv = [str(part) for part in command]
        logger.debug(f"Running: {' '.join(argv)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd) if cwd else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            # Report a missing executable the way a shell would
            return ProcessResult(argv, 127, "", str(e))

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
            raise

        result = ProcessResult(
            command=argv,
            exit_status=process.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
        logger.debug(f"`{argv[0]}` exited with {result.exit_status}")
        return result


def substitute_path(command: Sequence[str], path: Path) -> List[str]:
    """Replace ``{path}`` placeholders in a configured argv list."""
    return [str(part).replace("{path}", str(path)) for part in command]
