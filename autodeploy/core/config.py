"""
Application configuration using Pydantic Settings.
"""
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "Vision Deploy"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "info"
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost"

    # Source checkout
    WORKSPACE_ROOT: str = "/tmp/vision-deploy"
    GIT_BINARY: str = "git"
    GIT_PRIMARY_BRANCH: str = "main"
    GIT_FALLBACK_BRANCH: str = "master"
    GIT_CLONE_TIMEOUT: int = 600  # 10 min, same ceiling as image builds

    # Container engine
    DOCKER_BINARY: str = "docker"
    CONTAINER_PREFIX: str = "vision"
    IMAGE_REPOSITORY: str = "vision-paas"
    RECIPE_FILENAME: str = "Dockerfile"
    DOCKER_BUILD_TIMEOUT: int = 600  # seconds
    DOCKER_COMMAND_TIMEOUT: int = 60
    DOCKER_STOP_TIMEOUT: int = 30
    CONTAINER_RESTART_MAX_RETRIES: int = 3

    # Deployment
    DEFAULT_MEMORY_MB: int = 512
    DEPLOYMENT_TIMEOUT: int = 900  # whole deploy, clone through health check

    # Liveness polling after container start
    HEALTH_CHECK_INITIAL_DELAY: float = 3.0
    HEALTH_CHECK_INTERVAL: float = 1.0
    HEALTH_CHECK_BACKOFF_FACTOR: float = 2.0
    HEALTH_CHECK_MAX_INTERVAL: float = 10.0
    HEALTH_CHECK_MAX_ATTEMPTS: int = 6
    HEALTH_CHECK_PATH: Optional[str] = None  # e.g. "/health"; None = engine state only
    HEALTH_CHECK_HOST: str = "localhost"
    HEALTH_CHECK_HTTP_TIMEOUT: float = 5.0

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


settings = Settings()
