"""
Pydantic schemas for the deploy API.

Field names are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from autodeploy.models.deployment import DeploymentRecord
from autodeploy.models.project_type import ProjectType
from autodeploy.services.docker.runtime_base import ContainerStats

T = TypeVar("T")

CAMEL_CONFIG = {"populate_by_name": True}


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope used by every deploy endpoint."""
    success: bool = True
    message: str = ""
    data: Optional[T] = None


class AutoDeployRequest(BaseModel):
    """Schema for a zero-configuration deployment."""
    project_id: str = Field(..., alias="projectId", min_length=1, max_length=128)
    git_url: str = Field(..., alias="gitUrl", min_length=1, max_length=2048)
    env_vars: Optional[Dict[str, str]] = Field(None, alias="envVars")
    memory_mb: Optional[int] = Field(None, alias="memoryMB", gt=0)

    model_config = CAMEL_CONFIG


class CustomDeployRequest(AutoDeployRequest):
    """Schema for a deployment with caller-supplied overrides."""
    project_type: Optional[str] = Field(None, alias="projectType")
    port: Optional[int] = Field(None, ge=1, le=65535)
    custom_dockerfile: Optional[str] = Field(None, alias="customDockerfile")
    build_command: Optional[str] = Field(None, alias="buildCommand")
    start_command: Optional[str] = Field(None, alias="startCommand")
    root_directory: Optional[str] = Field(None, alias="rootDirectory")


class RedeployRequest(BaseModel):
    """Schema for redeploying an existing project."""
    git_url: str = Field(..., alias="gitUrl", min_length=1, max_length=2048)
    env_vars: Optional[Dict[str, str]] = Field(None, alias="envVars")
    memory_mb: Optional[int] = Field(None, alias="memoryMB", gt=0)

    model_config = CAMEL_CONFIG


class RollbackRequest(BaseModel):
    """Schema for rolling back to an earlier container."""
    previous_container_id: str = Field(..., alias="previousContainerId", min_length=1)

    model_config = CAMEL_CONFIG


class DeploymentResultResponse(BaseModel):
    """Outcome of one deployment call."""
    project_id: str = Field(..., alias="projectId")
    state: str
    state_history: List[str] = Field(default_factory=list, alias="stateHistory")
    project_type: Optional[str] = Field(None, alias="projectType")
    port: Optional[int] = None
    host_port: Optional[int] = Field(None, alias="hostPort")
    image_id: Optional[str] = Field(None, alias="imageId")
    container_id: Optional[str] = Field(None, alias="containerId")
    dockerfile: Optional[str] = None
    revision: Optional[str] = None
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime = Field(..., alias="startedAt")
    finished_at: Optional[datetime] = Field(None, alias="finishedAt")

    model_config = CAMEL_CONFIG

    @classmethod
    def from_record(cls, record: DeploymentRecord) -> "DeploymentResultResponse":
        return cls(
            project_id=record.project_id,
            state=record.state.value,
            state_history=[state.value for state in record.state_history],
            project_type=record.detected_type.tag if record.detected_type else None,
            port=record.resolved_port,
            host_port=record.host_port,
            image_id=record.image_ref,
            container_id=record.container_ref,
            dockerfile=record.recipe,
            revision=record.revision,
            logs=list(record.logs),
            error=record.error,
            started_at=record.started_at,
            finished_at=record.finished_at,
        )


class ContainerStatsResponse(BaseModel):
    """Schema for container state."""
    status: str
    running: bool
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    exit_code: Optional[int] = Field(None, alias="exitCode")

    model_config = CAMEL_CONFIG

    @classmethod
    def from_stats(cls, stats: ContainerStats) -> "ContainerStatsResponse":
        return cls(
            status=stats.state,
            running=stats.running,
            started_at=stats.started_at,
            exit_code=stats.exit_code,
        )


class ContainerLogsResponse(BaseModel):
    """Schema for container logs."""
    container: str
    tail: int
    logs: str


class ProjectTypeResponse(BaseModel):
    """A supported project type and its defaults."""
    tag: str
    name: str
    display_name: str = Field(..., alias="displayName")
    runtime: str
    default_port: int = Field(..., alias="defaultPort")

    model_config = CAMEL_CONFIG

    @classmethod
    def from_type(cls, project_type: ProjectType) -> "ProjectTypeResponse":
        return cls(
            tag=project_type.tag,
            name=project_type.name,
            display_name=project_type.display_name,
            runtime=project_type.runtime_family,
            default_port=project_type.default_port,
        )


class ServiceHealthResponse(BaseModel):
    """Deploy service liveness."""
    status: str
    service: str
    version: str
    docker: bool
