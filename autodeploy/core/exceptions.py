"""
Custom exception hierarchy for domain-specific errors.

Services raise domain exceptions, and the exception handlers registered in
main.py map them to HTTP responses. The pipeline itself converts the
expected failure kinds (source, build, runtime, health) into a FAILED
deployment record instead of letting them escape.
"""
from typing import Optional, Dict, Any


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Not Found Errors (404)
# =============================================================================

class NotFoundError(DomainException):
    """Base class for resource not found errors."""
    pass


class DeploymentRecordNotFoundError(NotFoundError):
    """No deployment has been recorded for this project."""

    def __init__(self, project_id: str):
        super().__init__(f"No deployment found for project: {project_id}", {"project_id": project_id})


# =============================================================================
# Conflict Errors (409)
# =============================================================================

class ConflictError(DomainException):
    """Base class for requests that collide with current state."""
    pass


class DeploymentInProgressError(ConflictError):
    """Another deployment operation holds the project lock."""

    def __init__(self, project_id: str):
        super().__init__(
            f"A deployment for project {project_id} is already in progress",
            {"project_id": project_id},
        )


# =============================================================================
# Validation Errors (400)
# =============================================================================

class ValidationError(DomainException):
    """Base class for validation errors."""
    pass


class InvalidDeploymentRequestError(ValidationError):
    """Deployment request failed validation."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid deployment request field {field}: {reason}", {"field": field, "reason": reason})


class InvalidStateTransitionError(ValidationError):
    """Deployment state machine was asked to make an illegal move."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Illegal deployment state transition: {current} -> {requested}",
            {"current": current, "requested": requested},
        )


# =============================================================================
# Operation Errors (500)
# =============================================================================

class OperationError(DomainException):
    """Base class for operation failures."""
    pass


class SourceError(OperationError):
    """Repository could not be cloned or updated."""

    def __init__(self, git_url: str, reason: str):
        super().__init__(f"Failed to clone repository {git_url}: {reason}", {"git_url": git_url, "reason": reason})


class BuildError(OperationError):
    """Recipe write or image build failed."""

    def __init__(self, project_id: str, reason: str):
        super().__init__(f"Build failed ({project_id}): {reason}", {"project_id": project_id, "reason": reason})


class ContainerRuntimeError(OperationError):
    """Container engine operation failed."""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"Container {operation} failed: {reason}", {"operation": operation, "reason": reason})


class ContainerNotFoundError(ContainerRuntimeError):
    """Container does not exist."""

    def __init__(self, container_ref: str, operation: str = "inspect"):
        super().__init__(operation, f"no such container: {container_ref}")
        self.details["container_ref"] = container_ref


class HealthCheckFailure(OperationError):
    """Container did not report a running state within the polling budget."""

    def __init__(self, container_ref: str, attempts: int):
        super().__init__(
            f"Container {container_ref} not healthy after {attempts} checks",
            {"container_ref": container_ref, "attempts": attempts},
        )


class RollbackError(OperationError):
    """Rollback to a previous container failed."""

    def __init__(self, project_id: str, reason: str):
        super().__init__(f"Rollback failed ({project_id}): {reason}", {"project_id": project_id, "reason": reason})


# =============================================================================
# Non-fatal
# =============================================================================

class ClassificationAmbiguity(DomainException):
    """Workspace could not be classified. Always resolved to UNKNOWN."""

    def __init__(self, workspace_path: str, reason: str):
        super().__init__(
            f"Cannot classify {workspace_path}: {reason}",
            {"workspace_path": workspace_path, "reason": reason},
        )
