"""
Pytest configuration and shared fixtures for xcodeskit tests.
"""

import json
import plistlib
import tempfile
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional, Tuple

import pytest

from xcodeskit.core.config import Configuration
from xcodeskit.core.process import ProcessResult, ProcessRunner


# ============================================================================
# Test Doubles
# ============================================================================


class FakeRunner(ProcessRunner):
    """
    ProcessRunner that records commands instead of spawning them.

    Results are configured per executable; side effects let a test emulate
    what the real tool would leave on disk (e.g. xip expanding a bundle).
    """

    def __init__(self):
        self.calls: List[Tuple[List[str], Optional[Path]]] = []
        self.results: Dict[str, Tuple[int, str, str]] = {}
        self.side_effects: Dict[str, Callable[[List[str], Optional[Path]], None]] = {}

    def set_result(self, executable: str, exit_status: int = 0, stdout: str = "", stderr: str = ""):
        self.results[executable] = (exit_status, stdout, stderr)

    def on(self, executable: str, effect: Callable[[List[str], Optional[Path]], None]):
        self.side_effects[executable] = effect

    @property
    def commands(self) -> List[List[str]]:
        return [argv for argv, _ in self.calls]

    async def run(self, command, cwd=None) -> ProcessResult:
        argv = [str(part) for part in command]
        self.calls.append((argv, cwd))
        effect = self.side_effects.get(argv[0])
        if effect is not None:
            effect(argv, cwd)
        exit_status, stdout, stderr = self.results.get(argv[0], (0, "", ""))
        return ProcessResult(argv, exit_status, stdout, stderr)


def make_bundle(parent: Path, name: str = "Xcode.app", short_version: str = "11.0") -> Path:
    """Create a minimal bundle directory with Contents/version.plist."""
    bundle = parent / name
    contents = bundle / "Contents"
    contents.mkdir(parents=True)
    with open(contents / "version.plist", "wb") as f:
        plistlib.dump({"CFBundleShortVersionString": short_version}, f)
    (contents / "MacOS").mkdir()
    return bundle


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def state_dir(temp_dir: Path, monkeypatch) -> Path:
    """Isolated xcodeskit state directory."""
    state = temp_dir / "state"
    state.mkdir()
    monkeypatch.setenv("XCODESKIT_HOME", str(state))
    monkeypatch.delenv("XCODESKIT_CONFIG", raising=False)
    return state


@pytest.fixture
def install_dir(temp_dir: Path) -> Path:
    """Empty install directory."""
    applications = temp_dir / "Applications"
    applications.mkdir()
    return applications


@pytest.fixture
def configuration(state_dir: Path, install_dir: Path) -> Configuration:
    """Configuration rooted in temporary directories, without verify commands."""
    return Configuration(
        state_dir=state_dir,
        install_directory=install_dir,
        catalog_url="https://example.com/catalog.json",
        verify_commands=[],
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def bundle_factory() -> Callable[..., Path]:
    """Factory creating bundles: bundle_factory(parent, name, short_version)."""
    return make_bundle


@pytest.fixture
def write_catalog(configuration: Configuration) -> Callable[..., Path]:
    """
    Factory writing a catalog cache.

    Usage:
        write_catalog([{"version": "10.2.1", "url": "https://.../Xcode_10.2.1.xip"}])
    """

    def _write(records: List[dict], updated: Optional[datetime] = None) -> Path:
        path = configuration.catalog_cache_path
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": 1,
            "updated": (updated or datetime.now()).isoformat(),
            "entries": records,
        }
        path.write_text(json.dumps(payload))
        return path

    return _write


@pytest.fixture
def archive_factory(temp_dir: Path) -> Callable[..., Path]:
    """
    Factory creating a zip archive holding one bundle.

    Usage:
        archive = archive_factory("Xcode_11.zip", short_version="11.0")
    """

    def _make(
        filename: str = "Xcode.zip",
        short_version: str = "11.0",
        bundle_names: Tuple[str, ...] = ("Xcode.app",),
    ) -> Path:
        source = temp_dir / f"archive-source-{filename}"
        source.mkdir()
        for name in bundle_names:
            make_bundle(source, name, short_version)

        archive = temp_dir / filename
        with zipfile.ZipFile(archive, "w") as zf:
            for path in sorted(source.rglob("*")):
                zf.write(path, path.relative_to(source).as_posix())
        return archive

    return _make
