"""
Domain models for the deployment pipeline.
"""
from autodeploy.models.project_type import ProjectType
from autodeploy.models.deployment import (
    DeploymentRecord,
    DeploymentRequest,
    DeploymentState,
    validate_project_id,
)

__all__ = [
    "ProjectType",
    "DeploymentRecord",
    "DeploymentRequest",
    "DeploymentState",
    "validate_project_id",
]
