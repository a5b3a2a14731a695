"""
Service for source checkout.

Handles:
- Cloning a repository into the project's workspace directory
- Default-branch fallback (main, then master)
- Revision lookup and fast-forward pulls
- Workspace cleanup
"""
import logging
import os
import shutil
from typing import Optional

from autodeploy.core.config import settings
from autodeploy.core.exceptions import SourceError
from autodeploy.core.process import run_command
from autodeploy.models.deployment import validate_project_id

logger = logging.getLogger(__name__)

UNKNOWN_REVISION = "unknown"


class SourceFetcher:
    """
    Service for git workspaces.

    Responsibilities:
    - Keep at most one workspace per project id
    - Clone with one automatic branch-name fallback
    - Remove workspaces on request
    """

    def __init__(
        self,
        workspace_root: Optional[str] = None,
        git_binary: Optional[str] = None,
        primary_branch: Optional[str] = None,
        fallback_branch: Optional[str] = None,
        clone_timeout: Optional[int] = None,
    ):
        """
        Initialize SourceFetcher.

        Args:
            workspace_root: Directory under which workspaces are created
            git_binary: git executable
            primary_branch: Branch tried first
            fallback_branch: Branch tried when the primary clone fails
            clone_timeout: Seconds allowed per clone attempt
        """
        self.workspace_root = workspace_root or settings.WORKSPACE_ROOT
        self.git_binary = git_binary or settings.GIT_BINARY
        self.primary_branch = primary_branch or settings.GIT_PRIMARY_BRANCH
        self.fallback_branch = fallback_branch or settings.GIT_FALLBACK_BRANCH
        self.clone_timeout = clone_timeout or settings.GIT_CLONE_TIMEOUT

    def workspace_path(self, project_id: str) -> str:
        """Conventional workspace directory for a project."""
        validate_project_id(project_id)
        return os.path.join(self.workspace_root, project_id)

    def _git_env(self) -> dict:
        env = dict(os.environ)
        # Fail fast on private repositories instead of waiting for a password
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    def _remove_tree(self, path: str) -> None:
        if os.path.exists(path):
            shutil.rmtree(path)
            logger.info(f"Removed workspace: {path}")

    async def _clone_branch(self, git_url: str, branch: str, target: str):
        cmd = [
            self.git_binary, "clone",
            "--branch", branch,
            "--single-branch",
            "--", git_url, target,
        ]
        return await run_command(cmd, timeout=self.clone_timeout, env=self._git_env())

    async def fetch(self, git_url: str, project_id: str) -> str:
        """
        Clone a repository into a fresh workspace.

        Any existing workspace for the project is removed first. The primary
        branch is tried, then the fallback branch.

        Args:
            git_url: Repository URL
            project_id: Project identifier (names the workspace directory)

        Returns:
            Path to the cloned workspace

        Raises:
            SourceError: If both clone attempts fail
        """
        target = self.workspace_path(project_id)
        logger.info(f"[{project_id}] Cloning {git_url} into {target}")

        try:
            os.makedirs(self.workspace_root, exist_ok=True)
            self._remove_tree(target)
        except OSError as e:
            raise SourceError(git_url, f"cannot prepare workspace: {e}")

        result = await self._clone_branch(git_url, self.primary_branch, target)
        if result.ok:
            logger.info(f"[{project_id}] Cloned branch {self.primary_branch}")
            return target

        logger.warning(
            f"[{project_id}] Clone of branch {self.primary_branch} failed, "
            f"retrying with {self.fallback_branch}: {result.stderr}"
        )
        try:
            self._remove_tree(target)
        except OSError as e:
            raise SourceError(git_url, f"cannot reset workspace: {e}")

        result = await self._clone_branch(git_url, self.fallback_branch, target)
        if result.ok:
            logger.info(f"[{project_id}] Cloned branch {self.fallback_branch}")
            return target

        self.cleanup(project_id)
        raise SourceError(git_url, result.stderr or f"git exited with code {result.return_code}")

    async def pull(self, workspace_path: str) -> None:
        """
        Fast-forward an existing workspace to its upstream.

        Raises:
            SourceError: If the pull fails
        """
        cmd = [self.git_binary, "-C", workspace_path, "pull", "--ff-only"]
        result = await run_command(cmd, timeout=self.clone_timeout, env=self._git_env())
        if not result.ok:
            raise SourceError(workspace_path, result.stderr or "git pull failed")
        logger.info(f"Pulled latest changes for {workspace_path}")

    async def current_revision(self, workspace_path: str) -> str:
        """
        Commit SHA of the workspace HEAD.

        Returns:
            The SHA, or "unknown" when it cannot be read
        """
        cmd = [self.git_binary, "-C", workspace_path, "rev-parse", "HEAD"]
        result = await run_command(cmd, timeout=30, env=self._git_env())
        if result.ok and result.stdout:
            return result.stdout.splitlines()[0].strip()
        logger.debug(f"Could not resolve HEAD for {workspace_path}: {result.stderr}")
        return UNKNOWN_REVISION

    def cleanup(self, project_id: str) -> None:
        """
        Remove the project's workspace. Safe to call repeatedly.
        """
        target = self.workspace_path(project_id)
        if not os.path.exists(target):
            return
        try:
            shutil.rmtree(target)
            logger.info(f"[{project_id}] Cleaned up workspace")
        except OSError as e:
            logger.error(f"[{project_id}] Failed to clean up workspace {target}: {e}")
