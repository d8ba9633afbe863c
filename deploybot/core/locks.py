"""Environment locks backed by git references.

An environment is locked to a commit by creating the branch
``<prefix>/<environment>`` pointing at that commit. The platform creates
references atomically, so no separate data store is needed. The same
branch is what the workflow runner reports runs against, which lets runs
be correlated back to the deployment that triggered them.
"""

from deploybot.config import settings
from deploybot.core.exceptions import (
    LockConflictError,
    NotFoundError,
    ReferenceExistsError,
)
from deploybot.services.platform import DeploymentPlatform
from deploybot.utils.logging import get_logger


def lock_environment(branch: str | None, prefix: str) -> str | None:
    """Environment a lock branch belongs to, if it is one."""
    head = f"{prefix}/"
    if not branch or not branch.startswith(head) or branch == head:
        return None
    return branch[len(head):]


class LockManager:
    """Acquires, verifies and releases per-environment locks."""

    def __init__(self, platform: DeploymentPlatform, prefix: str | None = None):
        self.platform = platform
        self.prefix = prefix or settings.lock_ref_prefix
        self.logger = get_logger("locks")

    def reference(self, env: str) -> str:
        """Branch name used as the lock for ``env``."""
        return f"{self.prefix}/{env}"

    async def lock(self, env: str, sha: str) -> None:
        """Lock ``env`` to ``sha``.

        Raises:
            LockConflictError: If the environment is already locked.
        """
        try:
            await self.platform.create_ref(self.reference(env), sha)
        except ReferenceExistsError as e:
            raise LockConflictError(
                f"Failed to acquire lock for {env} at {sha}", env, sha
            ) from e

        self.logger.info("locks.acquired", environment=env, sha=sha)

    async def unlock(self, env: str) -> None:
        """Release the lock on ``env``.

        Raises:
            NotFoundError: If the environment is not locked.
        """
        try:
            await self.platform.delete_ref(self.reference(env))
        except NotFoundError as e:
            raise NotFoundError(
                f"Failed to release lock for {env}", {"environment": env}
            ) from e

        self.logger.info("locks.released", environment=env)

    async def ensure(self, env: str, sha: str) -> bool:
        """Make sure ``env`` is locked to ``sha``, acquiring it if free.

        Creation is attempted first: two concurrent callers that both read
        the lock as absent would otherwise both proceed.

        Returns:
            True if this call acquired the lock, False if it was already held
            for ``sha``.

        Raises:
            LockConflictError: If the lock is held for another commit.
        """
        try:
            await self.lock(env, sha)
            return True
        except LockConflictError:
            pass

        try:
            current = await self.platform.get_ref(self.reference(env))
        except NotFoundError:
            # Released between the two calls; a second creation attempt
            # settles who holds it.
            await self.lock(env, sha)
            return True

        if current != sha:
            raise LockConflictError(
                f"Environment {env} is locked by a different commit ({current})",
                env,
                sha,
            )
        return False

    async def locked(self, env: str) -> bool:
        """Check whether ``env`` is locked.

        Advisory only; never branch on this before ``lock`` or ``ensure``.
        """
        try:
            await self.platform.get_ref(self.reference(env))
        except NotFoundError:
            return False
        return True
