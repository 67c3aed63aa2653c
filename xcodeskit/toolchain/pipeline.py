"""
Install pipeline.

Installing one version walks through fixed stages:

    resolving source -> fetching -> unpacking -> verifying -> placing -> done

Any stage may fail, which ends the run in the failed state with the stage
recorded on the raised error. Only the placing stage touches the installed
set, and it does so with a single rename of a fully unpacked and verified
bundle, so a failed or interrupted run never leaves a partial installation
visible to listing or selection.

Example:
    >>> pipeline = InstallPipeline(catalog, store, runner, verifier, downloads_dir)
    >>> result = asyncio.run(pipeline.install("11 Beta 7"))
    >>> print(result.toolchain.path)
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from xcodeskit.core.download import DownloadProgress, download_file
from xcodeskit.core.exceptions import (
    ArchiveExtractionError,
    FilesystemError,
    InvalidPathError,
    InvalidVersionError,
    OperationCancelledError,
    PipelineBusyError,
    UnsupportedArchiveFormat,
    XcodesKitError,
)
from xcodeskit.core.filesystem import (
    extract_archive,
    is_in_process_archive,
    make_staging_dir,
    safe_rmtree,
)
from xcodeskit.core.process import ProcessRunner
from xcodeskit.toolchain.catalog import Catalog, CatalogEntry
from xcodeskit.toolchain.installed import InstalledToolchain, ToolchainStore
from xcodeskit.toolchain.matcher import VersionQuery, parse_query, resolve
from xcodeskit.toolchain.verifier import ToolchainVerifier
from xcodeskit.toolchain.version import BUNDLE_SUFFIX, Version

logger = logging.getLogger(__name__)


async def _run_stoppable(func, *args):
    """
    Run a blocking download or extraction on a worker thread.

    ``func`` receives a ``cancel_event`` keyword. When the awaiting task is
    cancelled the event is set and the worker is waited for, so it never
    writes into a staging directory that is being discarded.
    """
    cancel_event = threading.Event()
    worker = asyncio.ensure_future(asyncio.to_thread(func, *args, cancel_event=cancel_event))
    try:
        return await asyncio.shield(worker)
    except asyncio.CancelledError:
        cancel_event.set()
        await asyncio.wait([worker])
        if not worker.cancelled() and worker.exception() is not None:
            error = worker.exception()
            if not isinstance(error, OperationCancelledError):
                logger.debug(f"Worker failed after cancellation: {error}")
        raise


class PipelineStage(Enum):
    """Stages of one install run, in execution order."""

    RESOLVING_SOURCE = "resolving source"
    FETCHING = "fetching"
    UNPACKING = "unpacking"
    VERIFYING = "verifying"
    PLACING = "placing"
    DONE = "done"
    FAILED = "failed"


STAGE_ORDER = [
    PipelineStage.RESOLVING_SOURCE,
    PipelineStage.FETCHING,
    PipelineStage.UNPACKING,
    PipelineStage.VERIFYING,
    PipelineStage.PLACING,
    PipelineStage.DONE,
]

STAGE_MESSAGES = {
    PipelineStage.FETCHING: "Downloading",
    PipelineStage.UNPACKING: "Unpacking",
    PipelineStage.VERIFYING: "Verifying",
    PipelineStage.PLACING: "Moving into place",
}


@dataclass
class PipelineRun:
    """State of one install attempt; discarded when the attempt ends."""

    query: VersionQuery
    stage: PipelineStage = PipelineStage.RESOLVING_SOURCE
    source: Optional[str] = None
    version: Optional[Version] = None
    archive_path: Optional[Path] = None
    staging_dir: Optional[Path] = None
    downloaded: bool = False
    failed_stage: Optional[PipelineStage] = None
    diagnostics: List[str] = field(default_factory=list)

    def advance(self, stage: PipelineStage):
        """
        Move to a later stage.

        Raises:
            RuntimeError: If stage is not after the current one
        """
        if STAGE_ORDER.index(stage) <= STAGE_ORDER.index(self.stage):
            raise RuntimeError(
                f"Install stage {stage.value} cannot follow {self.stage.value}"
            )
        self.stage = stage
        self.note(f"Stage: {stage.value}")
        if stage in STAGE_MESSAGES:
            logger.info(f"{STAGE_MESSAGES[stage]} Xcode {self.version}...")

    def fail(self, error: BaseException):
        self.failed_stage = self.stage
        self.stage = PipelineStage.FAILED
        self.note(f"Failed while {self.failed_stage.value}: {error}")

    def note(self, message: str):
        self.diagnostics.append(message)
        logger.debug(message)


@dataclass
class InstallResult:
    """Installed toolchain and whether it was already present."""

    toolchain: InstalledToolchain
    already_installed: bool = False


class InstallPipeline:
    """
    Drives install runs, at most one at a time.

    Collaborators are passed in explicitly so tests can substitute a fake
    process runner and a temporary install directory.
    """

    def __init__(
        self,
        catalog: Catalog,
        store: ToolchainStore,
        runner: ProcessRunner,
        verifier: ToolchainVerifier,
        downloads_dir: Path,
        download_timeout: int = 30,
        keep_archives: bool = False,
    ):
        self.catalog = catalog
        self.store = store
        self.runner = runner
        self.verifier = verifier
        self.downloads_dir = Path(downloads_dir)
        self.download_timeout = download_timeout
        self.keep_archives = keep_archives
        self._active_run: Optional[PipelineRun] = None

    @property
    def active_run(self) -> Optional[PipelineRun]:
        return self._active_run

    async def install(
        self,
        query: Union[VersionQuery, str],
        explicit_source_path: Optional[Path] = None,
    ) -> InstallResult:
        """
        Install the version named by query.

        Args:
            query: Parsed query or raw version token
            explicit_source_path: Local archive to install instead of downloading

        Returns:
            InstallResult for the new (or already present) installation

        Raises:
            PipelineBusyError: If another install is running in this pipeline
            XcodesKitError: Any stage failure, with ``stage`` set
        """
        if self._active_run is not None:
            raise PipelineBusyError(
                f"An install of {self._active_run.query.token} is already running"
            )

        if isinstance(query, str):
            query = parse_query(query)

        run = PipelineRun(query=query)
        self._active_run = run
        try:
            return await self._execute(run, explicit_source_path)
        except XcodesKitError as e:
            run.fail(e)
            # Resolution failures are reported on their own
            if e.stage is None and run.failed_stage is not PipelineStage.RESOLVING_SOURCE:
                e.stage = run.failed_stage.value
            raise
        except OSError as e:
            run.fail(e)
            error = FilesystemError(str(e))
            error.stage = run.failed_stage.value
            raise error from e
        except asyncio.CancelledError:
            run.note(f"Cancelled while {run.stage.value}")
            raise
        finally:
            self._discard(run)
            self._active_run = None

    async def _execute(
        self, run: PipelineRun, explicit_source_path: Optional[Path]
    ) -> InstallResult:
        query = run.query
        if query.is_path:
            raise InvalidVersionError(
                f"'{query.token}' is a path; give a version and pass the archive with --url"
            )

        entry: Optional[CatalogEntry] = None
        if explicit_source_path is not None:
            archive = Path(explicit_source_path).expanduser()
            if not archive.is_file():
                raise InvalidPathError(archive)
            run.version = query.version.filled()
            run.source = str(archive)
            run.archive_path = archive
        else:
            if self.catalog.should_refresh():
                await self.catalog.refresh()
            entry = resolve(query, self.catalog.available_entries())
            run.version = entry.version.filled()
            run.source = entry.url

        run.note(f"Resolved {query.token} to {run.version} from {run.source}")

        existing = self.store.find_installed(run.version)
        if existing is not None:
            return self._already_installed(run, existing)

        if entry is not None:
            run.advance(PipelineStage.FETCHING)
            run.archive_path = await self._fetch(run, entry)

        run.advance(PipelineStage.UNPACKING)
        run.staging_dir = make_staging_dir(self.store.install_directory)
        bundle = await self._unpack(run.archive_path, run.staging_dir)

        run.advance(PipelineStage.VERIFYING)
        await self.verifier.verify(bundle)

        run.advance(PipelineStage.PLACING)
        # Another process may have installed this version while we were busy
        existing = self.store.find_installed(run.version)
        if existing is not None:
            return self._already_installed(run, existing)

        destination = self.store.destination_for(run.version)
        try:
            toolchain = await asyncio.to_thread(
                self.store.place_atomically, bundle, destination
            )
        except FileExistsError as e:
            raise FilesystemError(
                f"{destination} already exists and is not an installation of {run.version}"
            ) from e

        run.advance(PipelineStage.DONE)
        logger.debug(f"Xcode {run.version} has been installed to {toolchain.path}")

        if run.downloaded and not self.keep_archives:
            self._remove_archive(run.archive_path)

        return InstallResult(toolchain=toolchain, already_installed=False)

    def _already_installed(
        self, run: PipelineRun, existing: InstalledToolchain
    ) -> InstallResult:
        logger.debug(f"Xcode {existing.version} is already installed at {existing.path}")
        run.stage = PipelineStage.DONE
        return InstallResult(toolchain=existing, already_installed=True)

    async def _fetch(self, run: PipelineRun, entry: CatalogEntry) -> Path:
        filename = entry.url.rstrip("/").rsplit("/", 1)[-1] or f"{run.version.bundle_name}.xip"
        destination = self.downloads_dir / filename

        def on_progress(progress: DownloadProgress):
            logger.debug(f"Downloading {filename}: {progress}")

        archive = await _run_stoppable(
            download_file,
            entry.url,
            destination,
            entry.sha256,
            on_progress,
            self.download_timeout,
        )
        run.downloaded = True
        return archive

    async def _unpack(self, archive: Path, staging_dir: Path) -> Path:
        """
        Unpack archive into staging_dir and return the bundle inside it.

        Raises:
            ExternalProcessError: If ``xip`` fails
            UnsupportedArchiveFormat: For unknown archive types
            ArchiveExtractionError: If the archive doesn't hold exactly one bundle
        """
        if is_in_process_archive(archive):
            await _run_stoppable(extract_archive, archive, staging_dir)
        elif archive.name.lower().endswith(".xip"):
            result = await self.runner.run(
                ["xip", "--expand", str(archive)], cwd=staging_dir
            )
            result.check()
        else:
            raise UnsupportedArchiveFormat(
                f"Unsupported archive format: {archive.name}. "
                "Supported: .xip, .zip, .tar.gz, .tar.xz, .tar.bz2"
            )

        return self._find_bundle(archive, staging_dir)

    def _find_bundle(self, archive: Path, staging_dir: Path) -> Path:
        search_root = staging_dir
        entries = [p for p in staging_dir.iterdir() if not p.name.startswith(".")]
        # Some archives wrap the bundle in a single top-level folder
        if len(entries) == 1 and entries[0].is_dir() and not entries[0].name.endswith(BUNDLE_SUFFIX):
            search_root = entries[0]

        bundles = [
            p for p in search_root.iterdir() if p.is_dir() and p.name.endswith(BUNDLE_SUFFIX)
        ]
        if len(bundles) != 1:
            raise ArchiveExtractionError(
                f"Expected one {BUNDLE_SUFFIX} bundle in {archive.name}, found {len(bundles)}"
            )
        return bundles[0]

    def _remove_archive(self, archive: Optional[Path]):
        if archive is None:
            return
        try:
            archive.unlink(missing_ok=True)
            logger.debug(f"Removed archive: {archive}")
        except OSError as e:
            logger.warning(f"Failed to remove archive {archive}: {e}")

    def _discard(self, run: PipelineRun):
        """Best-effort removal of the run's staging directory."""
        if run.staging_dir is None or not run.staging_dir.exists():
            return
        try:
            safe_rmtree(run.staging_dir, require_prefix=self.store.install_directory)
            logger.debug(f"Removed staging directory: {run.staging_dir}")
        except (FilesystemError, ValueError) as e:
            logger.warning(f"Failed to remove staging directory {run.staging_dir}: {e}")
