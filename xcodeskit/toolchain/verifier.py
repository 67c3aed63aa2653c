"""
Verification of an unpacked toolchain bundle before it is placed.

Two kinds of checks run in order:
1. Structure: the bundle looks like an Xcode bundle and has a version
2. External: each configured command (code signature, Gatekeeper assessment)
   must exit with status 0
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from xcodeskit.core.exceptions import VerificationError
from xcodeskit.core.process import ProcessRunner, substitute_path
from xcodeskit.toolchain.installed import is_toolchain_bundle, read_bundle_version

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Result of a single verification check."""

    name: str
    passed: bool
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


class BundleStructureCheck:
    """Verify the bundle layout and that a version can be read."""

    def check(self, bundle_path: Path) -> CheckResult:
        if not is_toolchain_bundle(bundle_path):
            return CheckResult(
                name="structure",
                passed=False,
                message=f"{bundle_path.name} is not an Xcode bundle "
                "(missing Contents/version.plist)",
            )

        version = read_bundle_version(bundle_path)
        if version is None:
            return CheckResult(
                name="structure",
                passed=False,
                message=f"Could not determine the version of {bundle_path.name}",
            )

        return CheckResult(
            name="structure",
            passed=True,
            message="Bundle structure is valid",
            details={"version": version.description},
        )


class ToolchainVerifier:
    """
    Runs structure and external checks against a bundle.

    Example:
        >>> verifier = ToolchainVerifier(AsyncioProcessRunner(), [["codesign", "-vv", "-d", "{path}"]])
        >>> results = await verifier.verify(Path("/tmp/staging/Xcode.app"))
    """

    def __init__(
        self,
        runner: ProcessRunner,
        commands: Optional[Sequence[Sequence[str]]] = None,
    ):
        self.runner = runner
        self.commands = [list(cmd) for cmd in (commands or [])]
        self.structure_check = BundleStructureCheck()

    async def verify(self, bundle_path: Path) -> List[CheckResult]:
        """
        Verify a bundle.

        Returns:
            Results of all checks (all passed)

        Raises:
            VerificationError: If the structure check fails
            ExternalProcessError: If a verification command exits non-zero
        """
        results = []

        structure = self.structure_check.check(bundle_path)
        results.append(structure)
        if not structure.passed:
            raise VerificationError(structure.message)

        for command in self.commands:
            argv = substitute_path(command, bundle_path)
            result = await self.runner.run(argv)
            result.check()
            results.append(
                CheckResult(
                    name=argv[0],
                    passed=True,
                    message=f"`{' '.join(argv)}` succeeded",
                    details={"stdout": result.stdout, "stderr": result.stderr},
                )
            )
            logger.debug(f"Verification passed: {' '.join(argv)}")

        return results
