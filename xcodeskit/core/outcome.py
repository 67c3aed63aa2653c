"""
Tagged results passed from command handlers to the CLI dispatcher.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from xcodeskit.core.exceptions import (
    AmbiguousVersionError,
    ExternalProcessError,
    FailureKind,
    XcodesKitError,
)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130  # Standard exit code for SIGINT


@dataclass
class ProcessDiagnostics:
    """Captured output of a failed external process."""

    command: List[str]
    exit_status: int
    stdout: str = ""
    stderr: str = ""


@dataclass
class Outcome:
    """Success, or a failure with its kind and a legible message."""

    ok: bool
    kind: Optional[FailureKind] = None
    message: str = ""
    stage: Optional[str] = None
    candidates: List[str] = field(default_factory=list)
    process: Optional[ProcessDiagnostics] = None

    @classmethod
    def success(cls, message: str = "") -> "Outcome":
        return cls(ok=True, message=message)

    @classmethod
    def from_error(cls, error: BaseException) -> "Outcome":
        """Convert a raised exception into a failure outcome."""
        if not isinstance(error, XcodesKitError):
            return cls(ok=False, kind=FailureKind.INTERNAL, message=str(error) or repr(error))

        outcome = cls(
            ok=False,
            kind=error.kind,
            message=str(error),
            stage=error.stage,
        )
        if isinstance(error, AmbiguousVersionError):
            outcome.candidates = list(error.candidates)
        if isinstance(error, ExternalProcessError):
            outcome.process = ProcessDiagnostics(
                command=list(error.command),
                exit_status=error.exit_status,
                stdout=error.stdout,
                stderr=error.stderr,
            )
        return outcome

    @property
    def exit_code(self) -> int:
        return EXIT_SUCCESS if self.ok else EXIT_FAILURE

    def render(self) -> str:
        """
        Render a failure for the terminal.

        External process failures include the command and its captured output
        verbatim; ambiguous matches list every tied candidate.
        """
        if self.ok:
            return self.message

        if self.process is not None:
            lines = [
                f"Failed executing: `{' '.join(self.process.command)}` "
                f"({self.process.exit_status})"
            ]
            captured = [
                text for text in (self.process.stdout, self.process.stderr) if text
            ]
            if captured:
                lines.append("\n".join(text.rstrip("\n") for text in captured))
            text = "\n".join(lines)
        elif self.candidates:
            text = self.message.split(":", 1)[0] + ":\n" + "\n".join(
                f"  {candidate}" for candidate in self.candidates
            )
        else:
            text = self.message

        if self.stage:
            text = f"Install failed while {self.stage}: {text}"
        return text
