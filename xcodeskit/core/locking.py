"""
Cross-process locking for shared xcodeskit state.

The installed set and the active pointer are shared by every xcodes process on
the machine. Placement of a new bundle and updates of the active pointer each
happen under a file lock so that two concurrent invocations never interleave
those steps.

Usage:
    from xcodeskit.core.locking import LockManager

    lock_manager = LockManager(lock_dir)
    with lock_manager.install_lock(timeout=60):
        # Re-check destination, then rename into place
        pass
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path

from filelock import FileLock, Timeout as LockTimeout

from xcodeskit.core.exceptions import LockTimeoutError

logger = logging.getLogger(__name__)


class LockManager:
    """
    Manages file locks for xcodeskit resources.

    Uses the `filelock` library, which releases locks automatically when the
    owning process dies.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Path):
        self.lock_dir = Path(lock_dir)

    @contextmanager
    def _acquire(self, name: str, timeout: float, description: str):
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock_path = self.lock_dir / f"{name}.lock"
        lock = FileLock(str(lock_path), timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired {description} lock: {lock_path}")
                yield
                logger.debug(f"Released {description} lock: {lock_path}")
        except LockTimeout as e:
            raise LockTimeoutError(
                f"Could not acquire {description} lock after {timeout}s. "
                "Another xcodes process may be running."
            ) from e

    @contextmanager
    def install_lock(self, timeout: float = 60):
        """
        Acquire the lock guarding changes to the installed set.

        Raises:
            LockTimeoutError: If lock can't be acquired within timeout
        """
        with self._acquire("install", timeout, "install"):
            yield

    @asynccontextmanager
    async def selection_lock(self, timeout: float = 30, poll_interval: float = 0.05):
        """
        Acquire the lock guarding the active pointer.

        The lock is polled without blocking, so the event loop keeps running
        while another process holds it and the lock may be held across awaits.

        Raises:
            LockTimeoutError: If lock can't be acquired within timeout
        """
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock_path = self.lock_dir / "selection.lock"
        lock = FileLock(str(lock_path))
        deadline = time.monotonic() + timeout

        while True:
            try:
                lock.acquire(timeout=0)
                break
            except LockTimeout as e:
                if time.monotonic() >= deadline:
                    raise LockTimeoutError(
                        f"Could not acquire selection lock after {timeout}s. "
                        "Another xcodes process may be running."
                    ) from e
                await asyncio.sleep(poll_interval)

        logger.debug(f"Acquired selection lock: {lock_path}")
        try:
            yield
        finally:
            lock.release()
            logger.debug(f"Released selection lock: {lock_path}")
