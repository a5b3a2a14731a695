"""
API router that includes all endpoint routers.
"""
from fastapi import APIRouter

from autodeploy.api.endpoints import deploy

# Create main API router
api_router = APIRouter()

api_router.include_router(
    deploy.router,
    prefix="/deploy",
    tags=["deploy"],
)
