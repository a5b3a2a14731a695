"""
Docker CLI container runtime.

Drives the local docker engine through its command line, one
subprocess per operation. Containers publish their port on an
ephemeral host port; the actual binding is read back with `docker port`.
"""
import hashlib
import json
import logging
import os
import re
from datetime import datetime
from typing import List, Mapping, Optional

from autodeploy.core.exceptions import BuildError, ContainerNotFoundError, ContainerRuntimeError
from autodeploy.core.process import CommandResult, run_command
from autodeploy.services.docker.runtime_base import ContainerRuntime, ContainerStats

logger = logging.getLogger(__name__)

NOT_FOUND_MARKERS = ("No such container", "No such object", "No such image")
IMAGE_ID_FILE = ".image-id"

# Characters outside a docker repository path component
IMAGE_SLUG_INVALID = re.compile(r"[^a-z0-9]+")
IMAGE_DIGEST_LENGTH = 12


def _is_not_found(stderr: str) -> bool:
    return any(marker in stderr for marker in NOT_FOUND_MARKERS)


class DockerCliRuntime(ContainerRuntime):
    """
    Container runtime backed by the docker CLI.

    Every setting is passed in explicitly; build one per application.
    """

    def __init__(
        self,
        docker_binary: str = "docker",
        container_prefix: str = "vision",
        image_repository: str = "vision-paas",
        recipe_filename: str = "Dockerfile",
        build_timeout: int = 600,
        command_timeout: int = 60,
        stop_timeout: int = 30,
        restart_max_retries: int = 3,
    ):
        """
        Initialize DockerCliRuntime.

        Args:
            docker_binary: docker executable
            container_prefix: Prefix of container names (<prefix>-<project_id>)
            image_repository: Repository of image tags (<repo>/<project_id>:latest)
            recipe_filename: Name the recipe is written under in the workspace
            build_timeout: Seconds allowed for one image build
            command_timeout: Seconds allowed for other docker commands
            stop_timeout: Grace period passed to `docker stop`
            restart_max_retries: Retries for the on-failure restart policy
        """
        self.docker_binary = docker_binary
        self.container_prefix = container_prefix
        self.image_repository = image_repository
        self.recipe_filename = recipe_filename
        self.build_timeout = build_timeout
        self.command_timeout = command_timeout
        self.stop_timeout = stop_timeout
        self.restart_max_retries = restart_max_retries

    @classmethod
    def from_settings(cls, settings) -> "DockerCliRuntime":
        return cls(
            docker_binary=settings.DOCKER_BINARY,
            container_prefix=settings.CONTAINER_PREFIX,
            image_repository=settings.IMAGE_REPOSITORY,
            recipe_filename=settings.RECIPE_FILENAME,
            build_timeout=settings.DOCKER_BUILD_TIMEOUT,
            command_timeout=settings.DOCKER_COMMAND_TIMEOUT,
            stop_timeout=settings.DOCKER_STOP_TIMEOUT,
            restart_max_retries=settings.CONTAINER_RESTART_MAX_RETRIES,
        )

    def container_name(self, project_id: str) -> str:
        return f"{self.container_prefix}-{project_id}"

    def image_name(self, project_id: str) -> str:
        """
        Image tag for a project.

        Project ids are case-sensitive and may hold separators docker rejects,
        so the repository is a lowercase slug plus a digest of the raw id.
        """
        slug = IMAGE_SLUG_INVALID.sub("-", project_id.lower()).strip("-")
        digest = hashlib.sha256(project_id.encode("utf-8")).hexdigest()[:IMAGE_DIGEST_LENGTH]
        return f"{self.image_repository}/{slug}-{digest}:latest"

    async def _docker(self, *args: str, timeout: Optional[float] = None) -> CommandResult:
        cmd = [self.docker_binary, *args]
        return await run_command(cmd, timeout=timeout or self.command_timeout)

    async def build_image(self, project_id: str, workspace_path: str, recipe: str) -> str:
        recipe_path = os.path.join(workspace_path, self.recipe_filename)
        iid_path = os.path.join(workspace_path, IMAGE_ID_FILE)
        try:
            with open(recipe_path, "w", encoding="utf-8") as f:
                f.write(recipe)
        except OSError as e:
            raise BuildError(project_id, f"cannot write {self.recipe_filename}: {e}")

        tag = self.image_name(project_id)
        logger.info(f"[{project_id}] Building image {tag}")

        result = await self._docker(
            "build",
            "--iidfile", iid_path,
            "-t", tag,
            "-f", recipe_path,
            workspace_path,
            timeout=self.build_timeout,
        )
        if result.timed_out:
            raise BuildError(project_id, f"build timed out after {self.build_timeout} seconds")
        if not result.ok:
            raise BuildError(project_id, result.output_tail() or f"docker exited with code {result.return_code}")

        image_ref = self._read_image_id(iid_path) or tag
        logger.info(f"[{project_id}] Built image {image_ref}")
        return image_ref

    @staticmethod
    def _read_image_id(iid_path: str) -> Optional[str]:
        try:
            with open(iid_path, encoding="utf-8") as f:
                return f.read().strip() or None
        except OSError:
            return None

    def _build_run_command(
        self,
        name: str,
        image_ref: str,
        port: int,
        env: Mapping[str, str],
        memory_mb: int,
    ) -> List[str]:
        """
        Build docker run command arguments.

        Returns:
            List of arguments after the docker binary
        """
        args = [
            "run", "-d",
            "--name", name,
            "-p", f"0:{port}",
            "--memory", f"{memory_mb}m",
            "--memory-swap", f"{memory_mb}m",
            "--restart", f"on-failure:{self.restart_max_retries}",
        ]
        for key, value in sorted(env.items()):
            args.extend(["-e", f"{key}={value}"])
        args.append(image_ref)
        return args

    async def start_container(
        self,
        project_id: str,
        image_ref: str,
        port: int,
        env: Mapping[str, str],
        memory_mb: int,
    ) -> str:
        name = self.container_name(project_id)

        # Replace any container left over under the same name
        await self.remove_container(name)

        result = await self._docker(*self._build_run_command(name, image_ref, port, env, memory_mb))
        if not result.ok:
            raise ContainerRuntimeError("start", result.stderr or f"docker exited with code {result.return_code}")

        container_id = result.stdout.splitlines()[-1].strip() if result.stdout else name
        logger.info(f"[{project_id}] Started container {name} ({container_id[:12]})")
        return container_id

    async def stop_container(self, container_ref: str) -> None:
        result = await self._docker(
            "stop", "-t", str(self.stop_timeout), container_ref,
            timeout=self.stop_timeout + self.command_timeout,
        )
        if result.ok:
            logger.info(f"Stopped container {container_ref}")
            return
        if _is_not_found(result.stderr):
            logger.debug(f"Container {container_ref} already gone")
            return
        raise ContainerRuntimeError("stop", result.stderr or f"docker exited with code {result.return_code}")

    async def remove_container(self, container_ref: str) -> None:
        result = await self._docker("rm", "-f", container_ref)
        if result.ok:
            logger.info(f"Removed container {container_ref}")
        elif not _is_not_found(result.stderr):
            logger.error(f"Failed to remove container {container_ref}: {result.stderr}")

    async def remove_image(self, project_id: str) -> None:
        tag = self.image_name(project_id)
        result = await self._docker("rmi", "-f", tag)
        if result.ok:
            logger.info(f"[{project_id}] Removed image {tag}")
        elif not _is_not_found(result.stderr):
            logger.error(f"[{project_id}] Failed to remove image {tag}: {result.stderr}")

    async def is_healthy(self, container_ref: str) -> bool:
        result = await self._docker("inspect", "--format", "{{.State.Status}}", container_ref)
        return result.ok and result.stdout.strip() == "running"

    async def host_port(self, container_ref: str, port: int) -> Optional[int]:
        result = await self._docker("port", container_ref, f"{port}/tcp")
        if not result.ok or not result.stdout:
            return None
        # Output format: "0.0.0.0:49153" or "[::]:49153"
        for line in result.stdout.splitlines():
            if ":" not in line:
                continue
            try:
                return int(line.rsplit(":", 1)[1])
            except ValueError:
                continue
        return None

    async def logs(self, container_ref: str, tail: int = 100) -> str:
        result = await self._docker("logs", "--tail", str(tail), container_ref)
        if not result.ok:
            if _is_not_found(result.stderr):
                raise ContainerNotFoundError(container_ref, "logs")
            raise ContainerRuntimeError("logs", result.stderr)
        # Containers write to both streams
        return "\n".join(part for part in (result.stdout, result.stderr) if part)

    async def stats(self, container_ref: str) -> ContainerStats:
        result = await self._docker(
            "inspect",
            "--format", '{"status": "{{.State.Status}}", "running": {{.State.Running}}, '
                        '"exit_code": {{.State.ExitCode}}, "started_at": "{{.State.StartedAt}}"}',
            container_ref,
        )
        if not result.ok:
            if _is_not_found(result.stderr):
                raise ContainerNotFoundError(container_ref, "inspect")
            raise ContainerRuntimeError("inspect", result.stderr)

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ContainerRuntimeError("inspect", f"unparseable inspect output: {e}")

        return ContainerStats(
            state=data.get("status", "unknown"),
            running=bool(data.get("running", False)),
            started_at=_parse_docker_time(data.get("started_at")),
            exit_code=data.get("exit_code"),
        )

    async def restart(self, container_ref: str) -> None:
        result = await self._docker(
            "restart", "-t", str(self.stop_timeout), container_ref,
            timeout=self.stop_timeout + self.command_timeout,
        )
        if not result.ok:
            if _is_not_found(result.stderr):
                raise ContainerNotFoundError(container_ref, "restart")
            raise ContainerRuntimeError("restart", result.stderr)
        logger.info(f"Restarted container {container_ref}")

    async def ping(self) -> bool:
        result = await self._docker("version", "--format", "{{.Server.Version}}", timeout=10)
        return result.ok


def _parse_docker_time(value: Optional[str]) -> Optional[datetime]:
    """Parse docker's RFC3339 timestamps (nanosecond precision, Z suffix)."""
    if not value or value.startswith("0001-"):
        return None
    try:
        trimmed = value.split(".")[0].replace("Z", "")
        return datetime.fromisoformat(trimmed + "+00:00")
    except ValueError:
        return None
