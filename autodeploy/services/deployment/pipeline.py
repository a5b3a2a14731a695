"""
Deployment orchestration.

Coordinates between:
- SourceFetcher for the git workspace
- TypeClassifier for project type and port
- RecipeService for the Dockerfile
- ContainerRuntime for build and run
- HealthChecker for liveness

One deploy call walks PENDING -> CLONING -> DETECTING -> BUILDING ->
DEPLOYING -> RUNNING, or drops to FAILED. Expected failures end in a
FAILED record, never an exception; compensation removes whatever the
call created.
"""
import asyncio
import logging
import os
from typing import Mapping, Optional

from autodeploy.core.exceptions import (
    BuildError,
    ContainerRuntimeError,
    InvalidDeploymentRequestError,
    OperationError,
    RollbackError,
)
from autodeploy.core.locks import ProjectLockRegistry
from autodeploy.models.deployment import (
    DeploymentRecord,
    DeploymentRequest,
    DeploymentState,
    validate_project_id,
)
from autodeploy.services.deployment.health import HealthChecker, HealthCheckPolicy
from autodeploy.services.deployment.record_store import DeploymentRecordStore
from autodeploy.services.detection import TypeClassifier
from autodeploy.services.docker import ContainerRuntime, ContainerStats, DockerCliRuntime, RecipeService
from autodeploy.services.source import SourceFetcher

logger = logging.getLogger(__name__)


class DeploymentPipeline:
    """
    Orchestration service for deployments.

    Provides deploy, custom deploy, redeploy and rollback, each holding the
    project lock for its whole duration.
    """

    def __init__(
        self,
        fetcher: SourceFetcher,
        classifier: TypeClassifier,
        recipes: RecipeService,
        runtime: ContainerRuntime,
        health: HealthChecker,
        locks: Optional[ProjectLockRegistry] = None,
        store: Optional[DeploymentRecordStore] = None,
        timeout: Optional[float] = None,
        default_memory_mb: int = 512,
    ):
        self.fetcher = fetcher
        self.classifier = classifier
        self.recipes = recipes
        self.runtime = runtime
        self.health = health
        self.locks = locks or ProjectLockRegistry()
        self.store = store or DeploymentRecordStore()
        self.timeout = timeout
        self.default_memory_mb = default_memory_mb

    @classmethod
    def from_settings(cls, settings) -> "DeploymentPipeline":
        """Wire the pipeline against the local git and docker CLIs."""
        runtime = DockerCliRuntime.from_settings(settings)
        return cls(
            fetcher=SourceFetcher(
                workspace_root=settings.WORKSPACE_ROOT,
                git_binary=settings.GIT_BINARY,
                primary_branch=settings.GIT_PRIMARY_BRANCH,
                fallback_branch=settings.GIT_FALLBACK_BRANCH,
                clone_timeout=settings.GIT_CLONE_TIMEOUT,
            ),
            classifier=TypeClassifier(),
            recipes=RecipeService(),
            runtime=runtime,
            health=HealthChecker(
                runtime,
                HealthCheckPolicy.from_settings(settings),
                http_path=settings.HEALTH_CHECK_PATH,
                http_host=settings.HEALTH_CHECK_HOST,
                http_timeout=settings.HEALTH_CHECK_HTTP_TIMEOUT,
            ),
            timeout=settings.DEPLOYMENT_TIMEOUT,
            default_memory_mb=settings.DEFAULT_MEMORY_MB,
        )

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def deploy(self, request: DeploymentRequest) -> DeploymentRecord:
        """
        Deploy with full auto-detection. Override fields on the request are ignored.

        Raises:
            DeploymentInProgressError: If the project is already being deployed
        """
        async with self.locks.hold(request.project_id):
            return await self._run(request, use_overrides=False)

    async def deploy_with_config(self, request: DeploymentRequest) -> DeploymentRecord:
        """
        Deploy honoring the request's overrides; only unset fields are detected.

        Raises:
            DeploymentInProgressError: If the project is already being deployed
        """
        async with self.locks.hold(request.project_id):
            return await self._run(request, use_overrides=True)

    async def redeploy(
        self,
        project_id: str,
        git_url: str,
        env: Optional[Mapping[str, str]] = None,
        memory_mb: Optional[int] = None,
    ) -> DeploymentRecord:
        """
        Tear down the project's current container and image, then deploy fresh.

        Raises:
            InvalidDeploymentRequestError: If the arguments are invalid
            DeploymentInProgressError: If the project is already being deployed
        """
        request = DeploymentRequest(
            project_id=project_id,
            git_url=git_url,
            env=env or {},
            memory_mb=memory_mb or self.default_memory_mb,
        )
        async with self.locks.hold(project_id):
            logger.info(f"Redeploying project: {project_id}")
            return await self._run(request, use_overrides=False, teardown=True)

    async def rollback(self, project_id: str, previous_container_ref: str) -> None:
        """
        Replace the current container with a previously deployed one.

        Raises:
            InvalidDeploymentRequestError: If the arguments are invalid
            DeploymentInProgressError: If the project is already being deployed
            RollbackError: If the current container cannot be stopped or the
                previous one cannot be restarted
        """
        validate_project_id(project_id)
        if not previous_container_ref or not previous_container_ref.strip():
            raise InvalidDeploymentRequestError("previous_container_ref", "must not be empty")

        async with self.locks.hold(project_id):
            logger.info(f"Rolling back project: {project_id}")
            current = self.runtime.container_name(project_id)
            try:
                if previous_container_ref != current:
                    await self.runtime.stop_container(current)
                    await self.runtime.remove_container(current)
                await self.runtime.restart(previous_container_ref)
            except ContainerRuntimeError as e:
                logger.error(f"[{project_id}] Rollback failed: {e.message}")
                raise RollbackError(project_id, e.message)
            logger.info(f"Rollback completed for project: {project_id}")

    def status(self, project_id: str) -> DeploymentRecord:
        """Latest deployment record of a project."""
        return self.store.get(project_id)

    async def container_logs(self, project_id: str, tail: int = 100) -> str:
        validate_project_id(project_id)
        return await self.runtime.logs(self.runtime.container_name(project_id), tail)

    async def container_stats(self, project_id: str) -> ContainerStats:
        validate_project_id(project_id)
        return await self.runtime.stats(self.runtime.container_name(project_id))

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _run(
        self, request: DeploymentRequest, use_overrides: bool, teardown: bool = False,
    ) -> DeploymentRecord:
        project_id = request.project_id
        record = DeploymentRecord(project_id=project_id)
        self.store.save(record)
        logger.info(f"Starting {'custom' if use_overrides else 'auto'}-deployment for project: {project_id}")

        try:
            await asyncio.wait_for(self._execute(record, request, use_overrides, teardown), timeout=self.timeout)
        except asyncio.TimeoutError:
            await self._fail(record, f"Deployment timed out after {self.timeout} seconds")
        except OperationError as e:
            await self._fail(record, e.message)
        except asyncio.CancelledError:
            await self._fail(record, "Deployment cancelled")
            raise
        except Exception as e:
            logger.exception(f"[{project_id}] Unexpected deployment error")
            await self._fail(record, str(e) or e.__class__.__name__)
            raise

        return record

    async def _execute(
        self, record: DeploymentRecord, request: DeploymentRequest, use_overrides: bool, teardown: bool,
    ) -> None:
        project_id = request.project_id

        if teardown:
            await self._teardown(record)

        record.transition(DeploymentState.CLONING)
        logger.info(f"[{project_id}] Cloning repository...")
        workspace = await self.fetcher.fetch(request.git_url, project_id)
        record.workspace_path = workspace
        record.revision = await self.fetcher.current_revision(workspace)
        record.add_log(f"✓ Repository cloned (revision {record.revision})")

        app_dir = workspace
        if use_overrides and request.root_directory:
            app_dir = os.path.join(workspace, request.root_directory)
            if not os.path.isdir(app_dir):
                raise BuildError(project_id, f"root directory not found: {request.root_directory}")

        record.transition(DeploymentState.DETECTING)
        logger.info(f"[{project_id}] Detecting project type...")
        if use_overrides and request.project_type is not None:
            project_type = request.project_type
            record.add_log(f"✓ Project type: {project_type.display_name} (requested)")
        else:
            project_type = self.classifier.classify(app_dir)
            record.add_log(f"✓ Detected project type: {project_type.display_name}")
        record.detected_type = project_type

        if use_overrides and request.port is not None:
            port = request.port
        else:
            port = self.classifier.detect_port(app_dir, project_type)
        record.resolved_port = port
        record.add_log(f"✓ Application port: {port}")

        logger.info(f"[{project_id}] Generating Dockerfile...")
        if use_overrides and request.custom_recipe:
            record.recipe = request.custom_recipe
            record.add_log("✓ Using custom Dockerfile")
        elif use_overrides and (request.build_command or request.start_command):
            record.recipe = self.recipes.render_with_overrides(
                project_type, port,
                build_command=request.build_command,
                start_command=request.start_command,
            )
            record.add_log("✓ Dockerfile generated with custom commands")
        else:
            record.recipe = self.recipes.render(project_type, port)
            record.add_log("✓ Dockerfile generated")

        record.transition(DeploymentState.BUILDING)
        logger.info(f"[{project_id}] Building Docker image...")
        record.image_ref = await self.runtime.build_image(project_id, app_dir, record.recipe)
        record.add_log(f"✓ Image built: {record.image_ref}")

        record.transition(DeploymentState.DEPLOYING)
        logger.info(f"[{project_id}] Starting container...")
        record.container_ref = await self.runtime.start_container(
            project_id, record.image_ref, port, request.env, request.memory_mb,
        )
        record.add_log(f"✓ Container started: {record.container_ref}")

        record.host_port = await self.runtime.host_port(record.container_ref, port)
        attempts = await self.health.wait_until_healthy(record.container_ref, record.host_port)
        record.add_log(f"✓ Health check passed after {attempts} check(s)")

        record.transition(DeploymentState.RUNNING)
        record.add_log("✓ Deployment completed successfully")
        logger.info(f"[{project_id}] Deployment completed successfully")

    async def _fail(self, record: DeploymentRecord, message: str) -> None:
        """Mark the record FAILED and undo what the call created."""
        logger.error(f"[{record.project_id}] Deployment failed: {message}")
        record.error = message
        record.add_log(f"✗ Deployment failed: {message}")
        if not record.state.is_terminal:
            record.transition(DeploymentState.FAILED)
        await self._compensate(record)

    async def _compensate(self, record: DeploymentRecord) -> None:
        project_id = record.project_id
        container = record.container_ref
        if container is None and DeploymentState.DEPLOYING in record.state_history:
            container = self.runtime.container_name(project_id)

        if container is not None:
            try:
                await self.runtime.stop_container(container)
                await self.runtime.remove_container(container)
            except Exception as e:
                logger.error(f"[{project_id}] Cleanup of container {container} failed: {e}")

        try:
            self.fetcher.cleanup(project_id)
        except Exception as e:
            logger.error(f"[{project_id}] Cleanup of workspace failed: {e}")

    async def _teardown(self, record: DeploymentRecord) -> None:
        """Best-effort removal of the project's container and image."""
        project_id = record.project_id
        name = self.runtime.container_name(project_id)
        try:
            await self.runtime.stop_container(name)
        except ContainerRuntimeError as e:
            logger.debug(f"[{project_id}] No running container to stop: {e.message}")
        await self.runtime.remove_container(name)
        await self.runtime.remove_image(project_id)
        record.add_log(f"✓ Previous container and image removed: {name}")
