"""
Pytest configuration and fixtures for autodeploy tests.

Provides in-memory stand-ins for git and docker so pipeline tests run
without either binary installed.
"""
import os
from typing import Dict, List, Mapping, Optional, Tuple

import pytest

# Set environment variables BEFORE any app imports
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "debug")

from autodeploy.core.exceptions import (  # noqa: E402
    BuildError,
    ContainerNotFoundError,
    ContainerRuntimeError,
    SourceError,
)
from autodeploy.services.deployment import DeploymentPipeline, HealthChecker, HealthCheckPolicy  # noqa: E402
from autodeploy.services.detection import TypeClassifier  # noqa: E402
from autodeploy.services.docker import ContainerRuntime, ContainerStats, RecipeService  # noqa: E402
from autodeploy.services.source import SourceFetcher  # noqa: E402


NEXT_REPO = {
    "package.json": '{"name": "web", "dependencies": {"next": "14.0.0", "react": "18.2.0"}}',
    "pages/index.js": "export default function Home() { return null }",
}

FASTAPI_REPO = {
    "requirements.txt": "fastapi==0.110.0\nuvicorn==0.27.0\n",
    "main.py": "from fastapi import FastAPI\napp = FastAPI()\n",
}


class FakeFetcher(SourceFetcher):
    """SourceFetcher that materializes a fixed file tree instead of cloning."""

    def __init__(self, workspace_root: str, files: Optional[Dict[str, str]] = None, fail: bool = False):
        super().__init__(workspace_root=workspace_root)
        self.files = files if files is not None else dict(NEXT_REPO)
        self.fail = fail
        self.fetched: List[Tuple[str, str]] = []

    async def fetch(self, git_url: str, project_id: str) -> str:
        self.fetched.append((git_url, project_id))
        if self.fail:
            raise SourceError(git_url, "fatal: repository not found")
        target = self.workspace_path(project_id)
        self._remove_tree(target)
        for relative_path, content in self.files.items():
            path = os.path.join(target, relative_path)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "w") as f:
                f.write(content)
        return target

    async def current_revision(self, workspace_path: str) -> str:
        return "abc123"


class FakeRuntime(ContainerRuntime):
    """In-memory container engine recording every operation."""

    def __init__(
        self,
        healthy: bool = True,
        fail_build: bool = False,
        fail_start: bool = False,
        host_port_value: Optional[int] = 49153,
    ):
        self.healthy = healthy
        self.fail_build = fail_build
        self.fail_start = fail_start
        self.host_port_value = host_port_value
        self.calls: List[Tuple] = []
        self.containers: Dict[str, bool] = {}
        self.images: Dict[str, str] = {}
        self.reachable = True

    def container_name(self, project_id: str) -> str:
        return f"vision-{project_id}"

    def image_name(self, project_id: str) -> str:
        return f"vision-paas/{project_id}:latest"

    async def build_image(self, project_id: str, workspace_path: str, recipe: str) -> str:
        self.calls.append(("build", project_id, workspace_path))
        if self.fail_build:
            raise BuildError(project_id, "npm ERR! missing script: build")
        image = self.image_name(project_id)
        self.images[image] = recipe
        return image

    async def start_container(
        self,
        project_id: str,
        image_ref: str,
        port: int,
        env: Mapping[str, str],
        memory_mb: int,
    ) -> str:
        self.calls.append(("start", project_id, image_ref, port, dict(env), memory_mb))
        name = self.container_name(project_id)
        self.containers.pop(name, None)
        if self.fail_start:
            raise ContainerRuntimeError("start", "port is already allocated")
        self.containers[name] = True
        return name

    async def stop_container(self, container_ref: str) -> None:
        self.calls.append(("stop", container_ref))
        if container_ref in self.containers:
            self.containers[container_ref] = False

    async def remove_container(self, container_ref: str) -> None:
        self.calls.append(("remove", container_ref))
        self.containers.pop(container_ref, None)

    async def remove_image(self, project_id: str) -> None:
        self.calls.append(("remove_image", project_id))
        self.images.pop(self.image_name(project_id), None)

    async def is_healthy(self, container_ref: str) -> bool:
        self.calls.append(("is_healthy", container_ref))
        return self.healthy and self.containers.get(container_ref, False)

    async def host_port(self, container_ref: str, port: int) -> Optional[int]:
        return self.host_port_value

    async def logs(self, container_ref: str, tail: int = 100) -> str:
        if container_ref not in self.containers:
            raise ContainerNotFoundError(container_ref, "logs")
        return "ready - started server on 0.0.0.0:3000"

    async def stats(self, container_ref: str) -> ContainerStats:
        if container_ref not in self.containers:
            raise ContainerNotFoundError(container_ref, "inspect")
        running = self.containers[container_ref]
        return ContainerStats(state="running" if running else "exited", running=running)

    async def restart(self, container_ref: str) -> None:
        self.calls.append(("restart", container_ref))
        if container_ref not in self.containers:
            raise ContainerNotFoundError(container_ref, "restart")
        self.containers[container_ref] = True

    async def ping(self) -> bool:
        return self.reachable

    def ops(self) -> List[str]:
        return [call[0] for call in self.calls]


async def no_sleep(delay: float) -> None:
    return None


def build_pipeline(fetcher: SourceFetcher, runtime: ContainerRuntime, max_attempts: int = 3) -> DeploymentPipeline:
    return DeploymentPipeline(
        fetcher=fetcher,
        classifier=TypeClassifier(),
        recipes=RecipeService(),
        runtime=runtime,
        health=HealthChecker(
            runtime,
            HealthCheckPolicy(initial_delay=0, interval=0, max_attempts=max_attempts),
            sleep=no_sleep,
        ),
        timeout=30,
    )


@pytest.fixture
def workspace_root(tmp_path):
    return str(tmp_path / "workspaces")


@pytest.fixture
def fake_runtime():
    return FakeRuntime()


@pytest.fixture
def fake_fetcher(workspace_root):
    return FakeFetcher(workspace_root)


@pytest.fixture
def pipeline(fake_fetcher, fake_runtime):
    return build_pipeline(fake_fetcher, fake_runtime)
