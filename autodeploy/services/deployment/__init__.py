"""
Deployment orchestration services.
"""
from autodeploy.services.deployment.health import HealthChecker, HealthCheckPolicy
from autodeploy.services.deployment.pipeline import DeploymentPipeline
from autodeploy.services.deployment.record_store import DeploymentRecordStore

__all__ = [
    "DeploymentPipeline",
    "DeploymentRecordStore",
    "HealthChecker",
    "HealthCheckPolicy",
]
