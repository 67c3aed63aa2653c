"""
Tests for cross-process state locks.
"""

import asyncio

from filelock import FileLock

import pytest

from xcodeskit.core.exceptions import LockTimeoutError
from xcodeskit.core.locking import LockManager


class TestLockManager:
    """Test install and selection locks."""

    def test_install_lock_creates_lock_file(self, temp_dir):
        manager = LockManager(temp_dir / "lock")

        with manager.install_lock():
            assert (temp_dir / "lock" / "install.lock").exists()

    def test_locks_are_independent(self, temp_dir):
        manager = LockManager(temp_dir / "lock")

        async def take_both():
            with manager.install_lock(timeout=1):
                async with manager.selection_lock(timeout=1):
                    pass

        asyncio.run(take_both())

    def test_timeout(self, temp_dir):
        manager = LockManager(temp_dir / "lock")
        (temp_dir / "lock").mkdir()
        holder = FileLock(str(temp_dir / "lock" / "selection.lock"))

        async def take_selection():
            async with manager.selection_lock(timeout=0.1):
                pass

        with holder:
            with pytest.raises(LockTimeoutError, match="selection lock"):
                asyncio.run(take_selection())

    def test_released_after_use(self, temp_dir):
        manager = LockManager(temp_dir / "lock")

        with manager.install_lock():
            pass

        holder = FileLock(str(temp_dir / "lock" / "install.lock"), timeout=0.1)
        with holder:
            assert holder.is_locked


class TestSelectionLockWaiting:
    """The selection lock waits without blocking the event loop."""

    def test_loop_runs_while_waiting(self, temp_dir):
        manager = LockManager(temp_dir / "lock")
        (temp_dir / "lock").mkdir()
        holder = FileLock(str(temp_dir / "lock" / "selection.lock"))
        ticks = []

        async def ticker():
            for _ in range(3):
                ticks.append(len(ticks))
                await asyncio.sleep(0.01)
            holder.release()

        async def scenario():
            ticking = asyncio.create_task(ticker())
            async with manager.selection_lock(timeout=5, poll_interval=0.01):
                acquired_after = len(ticks)
            await ticking
            return acquired_after

        holder.acquire()
        try:
            assert asyncio.run(scenario()) == 3
        finally:
            holder.release(force=True)

    def test_released_after_use(self, temp_dir):
        manager = LockManager(temp_dir / "lock")

        async def take_selection():
            async with manager.selection_lock():
                assert (temp_dir / "lock" / "selection.lock").exists()

        asyncio.run(take_selection())

        holder = FileLock(str(temp_dir / "lock" / "selection.lock"), timeout=0.1)
        with holder:
            assert holder.is_locked
