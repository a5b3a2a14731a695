"""
FastAPI dependencies.
"""
from fastapi import Request

from autodeploy.core.config import Settings
from autodeploy.services.deployment import DeploymentPipeline


def get_pipeline(request: Request) -> DeploymentPipeline:
    """Pipeline built by the application factory."""
    return request.app.state.pipeline


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
