"""
Abstract base class for container runtimes.

Defines the narrow interface the deployment pipeline needs from a
container engine: build, start, stop, remove, inspect, logs.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional


@dataclass
class ContainerStats:
    """Runtime state of a container."""

    state: str
    running: bool
    started_at: Optional[datetime] = None
    exit_code: Optional[int] = None


class ContainerRuntime(ABC):
    """
    Abstract base class for container runtimes.

    Implementations must provide methods for:
    - Building images from a recipe
    - Starting, stopping, restarting and removing containers
    - Inspecting container state, ports and logs
    """

    @abstractmethod
    def container_name(self, project_id: str) -> str:
        """Conventional container name for a project."""
        pass

    @abstractmethod
    def image_name(self, project_id: str) -> str:
        """Conventional image reference for a project."""
        pass

    @abstractmethod
    async def build_image(self, project_id: str, workspace_path: str, recipe: str) -> str:
        """
        Write the recipe into the workspace and build an image from it.

        Args:
            project_id: Project identifier
            workspace_path: Build context directory
            recipe: Dockerfile text

        Returns:
            Image reference

        Raises:
            BuildError: If the build fails or times out
        """
        pass

    @abstractmethod
    async def start_container(
        self,
        project_id: str,
        image_ref: str,
        port: int,
        env: Mapping[str, str],
        memory_mb: int,
    ) -> str:
        """
        Start a detached container for the project.

        Args:
            project_id: Project identifier
            image_ref: Image to run
            port: Container port to publish on an ephemeral host port
            env: Environment variables
            memory_mb: Memory limit in megabytes (swap capped to the same value)

        Returns:
            Container reference

        Raises:
            ContainerRuntimeError: If the container cannot be started
        """
        pass

    @abstractmethod
    async def stop_container(self, container_ref: str) -> None:
        """Stop a container. A missing container counts as stopped."""
        pass

    @abstractmethod
    async def remove_container(self, container_ref: str) -> None:
        """Force-remove a container. Failures are logged, never raised."""
        pass

    @abstractmethod
    async def remove_image(self, project_id: str) -> None:
        """Force-remove the project's image. Failures are logged, never raised."""
        pass

    @abstractmethod
    async def is_healthy(self, container_ref: str) -> bool:
        """True iff the container is currently running."""
        pass

    @abstractmethod
    async def host_port(self, container_ref: str, port: int) -> Optional[int]:
        """Host port mapped to a container port, if any."""
        pass

    @abstractmethod
    async def logs(self, container_ref: str, tail: int = 100) -> str:
        """Last lines of container output."""
        pass

    @abstractmethod
    async def stats(self, container_ref: str) -> ContainerStats:
        """Current container state."""
        pass

    @abstractmethod
    async def restart(self, container_ref: str) -> None:
        """Restart an existing container."""
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """True if the engine is reachable."""
        pass
