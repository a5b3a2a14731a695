"""
Container services: recipe synthesis and the container runtime.
"""
from autodeploy.services.docker.cli_runtime import DockerCliRuntime
from autodeploy.services.docker.recipe_service import RecipeService, register
from autodeploy.services.docker.runtime_base import ContainerRuntime, ContainerStats

__all__ = [
    "ContainerRuntime",
    "ContainerStats",
    "DockerCliRuntime",
    "RecipeService",
    "register",
]
