"""
Exception handlers that map domain exceptions to HTTP responses.

Register these handlers in main.py to automatically convert domain exceptions
to appropriate HTTP status codes and response formats.
"""
import logging
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from autodeploy.core.exceptions import (
    ConflictError,
    ContainerNotFoundError,
    DomainException,
    NotFoundError,
    OperationError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Log validation errors for debugging."""
    logger.error(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"success": False, "message": "Request validation failed", "detail": jsonable_encoder(exc.errors())},
    )


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """
    Handle all domain exceptions and map to appropriate HTTP status codes.
    """
    if isinstance(exc, (NotFoundError, ContainerNotFoundError)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConflictError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, OperationError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        # Operation errors that reach here escaped the pipeline (rollback, logs, stats)
        logger.error(f"Operation error: {exc.message}", extra={"details": exc.details})
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        logger.error(f"Unhandled domain exception: {exc.message}", extra={"details": exc.details})

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": exc.message,
            "error_type": exc.__class__.__name__,
            **exc.details,
        },
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI app.
    """
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
