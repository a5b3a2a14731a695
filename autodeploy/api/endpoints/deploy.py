"""
API endpoints for deployments.

Deploy calls run to a terminal state before responding; an expected
failure comes back as a FAILED result with success=false, not as an
HTTP error.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from autodeploy.api.deps import get_pipeline, get_settings
from autodeploy.core.config import Settings
from autodeploy.core.exceptions import InvalidDeploymentRequestError
from autodeploy.models.deployment import DeploymentRecord, DeploymentRequest, DeploymentState
from autodeploy.models.project_type import ProjectType
from autodeploy.schemas.deployment import (
    ApiResponse,
    AutoDeployRequest,
    ContainerLogsResponse,
    ContainerStatsResponse,
    CustomDeployRequest,
    DeploymentResultResponse,
    ProjectTypeResponse,
    RedeployRequest,
    RollbackRequest,
    ServiceHealthResponse,
)
from autodeploy.services.deployment import DeploymentPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


def _result(record: DeploymentRecord, action: str) -> ApiResponse[DeploymentResultResponse]:
    succeeded = record.state is DeploymentState.RUNNING
    return ApiResponse[DeploymentResultResponse](
        success=succeeded,
        message=f"{action} completed" if succeeded else f"{action} failed: {record.error}",
        data=DeploymentResultResponse.from_record(record),
    )


@router.post("/auto", response_model=ApiResponse[DeploymentResultResponse])
async def auto_deploy(
    body: AutoDeployRequest,
    pipeline: DeploymentPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[DeploymentResultResponse]:
    """
    Zero-configuration deployment: clone, detect, build, run.

    Raises:
        InvalidDeploymentRequestError: If the request is invalid (400)
        DeploymentInProgressError: If the project is already deploying (409)
    """
    logger.info(f"Received auto-deploy request for project: {body.project_id}")
    request = DeploymentRequest(
        project_id=body.project_id,
        git_url=body.git_url,
        env=body.env_vars or {},
        memory_mb=body.memory_mb or settings.DEFAULT_MEMORY_MB,
    )
    record = await pipeline.deploy(request)
    return _result(record, "Deployment")


@router.post("/custom", response_model=ApiResponse[DeploymentResultResponse])
async def custom_deploy(
    body: CustomDeployRequest,
    pipeline: DeploymentPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[DeploymentResultResponse]:
    """
    Deployment with overrides; anything not supplied is detected.

    Raises:
        InvalidDeploymentRequestError: If the request is invalid (400)
        DeploymentInProgressError: If the project is already deploying (409)
    """
    logger.info(f"Received custom deploy request for project: {body.project_id}")
    try:
        project_type = ProjectType.parse(body.project_type)
    except ValueError as e:
        raise InvalidDeploymentRequestError("projectType", str(e))

    request = DeploymentRequest(
        project_id=body.project_id,
        git_url=body.git_url,
        env=body.env_vars or {},
        memory_mb=body.memory_mb or settings.DEFAULT_MEMORY_MB,
        project_type=project_type,
        port=body.port,
        custom_recipe=body.custom_dockerfile,
        build_command=body.build_command,
        start_command=body.start_command,
        root_directory=body.root_directory,
    )
    record = await pipeline.deploy_with_config(request)
    return _result(record, "Custom deployment")


@router.post("/redeploy/{project_id}", response_model=ApiResponse[DeploymentResultResponse])
async def redeploy(
    project_id: str,
    body: RedeployRequest,
    pipeline: DeploymentPipeline = Depends(get_pipeline),
) -> ApiResponse[DeploymentResultResponse]:
    """
    Replace the project's container with a fresh build of the repository.
    """
    logger.info(f"Received redeploy request for project: {project_id}")
    record = await pipeline.redeploy(
        project_id,
        body.git_url,
        env=body.env_vars,
        memory_mb=body.memory_mb,
    )
    return _result(record, "Redeployment")


@router.post("/rollback/{project_id}", response_model=ApiResponse[None])
async def rollback(
    project_id: str,
    body: RollbackRequest,
    pipeline: DeploymentPipeline = Depends(get_pipeline),
) -> ApiResponse[None]:
    """
    Restart a previously deployed container in place of the current one.

    Raises:
        RollbackError: If the rollback fails (500)
    """
    await pipeline.rollback(project_id, body.previous_container_id)
    return ApiResponse[None](message=f"Rolled back to container {body.previous_container_id}")


@router.get("/health", response_model=ServiceHealthResponse)
async def health(
    pipeline: DeploymentPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
) -> ServiceHealthResponse:
    """Deploy service liveness, with container engine reachability."""
    return ServiceHealthResponse(
        status="ok",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        docker=await pipeline.runtime.ping(),
    )


@router.get("/project-types", response_model=ApiResponse[List[ProjectTypeResponse]])
async def list_project_types() -> ApiResponse[List[ProjectTypeResponse]]:
    """Supported project types and their default ports."""
    types = [ProjectTypeResponse.from_type(t) for t in ProjectType if t is not ProjectType.UNKNOWN]
    return ApiResponse[List[ProjectTypeResponse]](data=types)


@router.get("/{project_id}", response_model=ApiResponse[DeploymentResultResponse])
async def get_deployment(
    project_id: str,
    pipeline: DeploymentPipeline = Depends(get_pipeline),
) -> ApiResponse[DeploymentResultResponse]:
    """
    Latest deployment result for a project.

    Raises:
        DeploymentRecordNotFoundError: If the project was never deployed (404)
    """
    record = pipeline.status(project_id)
    return ApiResponse[DeploymentResultResponse](
        message=f"Deployment is {record.state.value}",
        data=DeploymentResultResponse.from_record(record),
    )


@router.get("/{project_id}/logs", response_model=ApiResponse[ContainerLogsResponse])
async def get_container_logs(
    project_id: str,
    tail: int = Query(100, ge=1, le=10000),
    pipeline: DeploymentPipeline = Depends(get_pipeline),
) -> ApiResponse[ContainerLogsResponse]:
    """
    Raises:
        ContainerNotFoundError: If the project has no container (404)
    """
    logs = await pipeline.container_logs(project_id, tail)
    return ApiResponse[ContainerLogsResponse](
        data=ContainerLogsResponse(
            container=pipeline.runtime.container_name(project_id),
            tail=tail,
            logs=logs,
        ),
    )


@router.get("/{project_id}/stats", response_model=ApiResponse[ContainerStatsResponse])
async def get_container_stats(
    project_id: str,
    pipeline: DeploymentPipeline = Depends(get_pipeline),
) -> ApiResponse[ContainerStatsResponse]:
    stats = await pipeline.container_stats(project_id)
    return ApiResponse[ContainerStatsResponse](data=ContainerStatsResponse.from_stats(stats))
