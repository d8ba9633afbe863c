"""Unit tests for the reference-backed lock manager."""

import asyncio

import pytest

from deploybot.core.exceptions import LockConflictError, NotFoundError
from deploybot.core.locks import LockManager, lock_environment


class TestLockManager:
    """Tests for lock, unlock, ensure and locked."""

    def test_reference_and_environment(self, locks: LockManager):
        assert locks.reference("production") == "deployments/production"
        assert lock_environment(locks.reference("production"), locks.prefix) == "production"
        assert lock_environment("deployments/", "deployments") is None
        assert lock_environment("main", "deployments") is None
        assert lock_environment(None, "deployments") is None

    @pytest.mark.asyncio
    async def test_lock_creates_reference(self, locks, platform):
        await locks.lock("production", "abc")

        assert platform.refs == {"deployments/production": "abc"}
        assert await locks.locked("production")

    @pytest.mark.asyncio
    async def test_lock_twice_fails(self, locks):
        await locks.lock("production", "abc")

        with pytest.raises(LockConflictError):
            await locks.lock("production", "abc")

    @pytest.mark.asyncio
    async def test_unlock(self, locks, platform):
        await locks.lock("production", "abc")
        await locks.unlock("production")

        assert platform.refs == {}
        assert not await locks.locked("production")

    @pytest.mark.asyncio
    async def test_unlock_when_free_fails(self, locks):
        with pytest.raises(NotFoundError, match="Failed to release lock for production"):
            await locks.unlock("production")

    @pytest.mark.asyncio
    async def test_ensure_acquires_free_lock(self, locks, platform):
        assert await locks.ensure("production", "abc") is True
        assert platform.refs["deployments/production"] == "abc"

    @pytest.mark.asyncio
    async def test_ensure_same_sha_succeeds(self, locks):
        await locks.lock("production", "abc")

        assert await locks.ensure("production", "abc") is False

    @pytest.mark.asyncio
    async def test_ensure_different_sha_fails(self, locks):
        await locks.lock("production", "abc")

        with pytest.raises(LockConflictError, match="locked by a different commit"):
            await locks.ensure("production", "def")

    @pytest.mark.asyncio
    async def test_concurrent_locks_admit_one_commit(self, locks, platform):
        results = await asyncio.gather(
            *(locks.lock("production", sha) for sha in ("a1", "b2", "c3", "d4")),
            return_exceptions=True,
        )

        succeeded = [result for result in results if result is None]
        assert len(succeeded) == 1
        assert sum(isinstance(result, LockConflictError) for result in results) == 3
        assert platform.refs["deployments/production"] in ("a1", "b2", "c3", "d4")

    @pytest.mark.asyncio
    async def test_environments_lock_independently(self, locks, platform):
        await asyncio.gather(
            locks.lock("staging", "abc"),
            locks.lock("production", "abc"),
        )

        assert set(platform.refs) == {"deployments/staging", "deployments/production"}
