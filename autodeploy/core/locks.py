"""
Per-project mutual exclusion for deployment operations.

Deploy, redeploy and rollback for the same project share a workspace
directory, a container name and an image tag, so they must never overlap.
Different projects never contend.

Policy: reject. A caller that finds the project already locked gets
DeploymentInProgressError immediately instead of queueing behind it.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from autodeploy.core.exceptions import DeploymentInProgressError

logger = logging.getLogger(__name__)


class ProjectLockRegistry:
    """One asyncio.Lock per in-flight project id."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_locked(self, project_id: str) -> bool:
        lock = self._locks.get(project_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, project_id: str) -> AsyncIterator[None]:
        """
        Hold the project lock for the duration of the block.

        Raises:
            DeploymentInProgressError: If the project is already locked
        """
        lock = self._locks.setdefault(project_id, asyncio.Lock())
        # No await between the check and acquire, so this is atomic on the loop
        if lock.locked():
            logger.warning(f"[{project_id}] Rejected: deployment already in progress")
            raise DeploymentInProgressError(project_id)

        await lock.acquire()
        try:
            yield
        finally:
            lock.release()
            if not lock.locked():
                self._locks.pop(project_id, None)
