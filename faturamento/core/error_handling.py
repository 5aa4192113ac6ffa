"""
Billing errors and their HTTP responses

Every error leaving the API has the body
``{"error": {"message", "type", "details", "path"}}``.
"""
import logging
import os
import traceback
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(AppException):
    """Input rejected by a billing rule"""
    status_code = 422

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class GuiaValidationException(ValidationException):
    """Guide failed TISS validation; ``errors`` holds every violated rule"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Validação falhou", details={"errors": self.errors})


class NotFoundException(AppException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Registro não encontrado", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class GuiaNotFoundException(NotFoundException):
    def __init__(self, guia_id: str):
        super().__init__("Guia não encontrada", details={"guia_id": guia_id})


class GlosaNotFoundException(NotFoundException):
    def __init__(self, glosa_id: str):
        super().__init__("Glosa não encontrada", details={"glosa_id": glosa_id})


class ConflictException(AppException):
    """Operation not allowed in the current state"""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Conflito de estado", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details=details)


class GlosaFinalizadaException(ConflictException):
    """Glosa already resolved or rejected; no further appeal or decision"""

    def __init__(self, glosa_id: str, glosa_status: str):
        super().__init__("Glosa já finalizada", details={"glosa_id": glosa_id, "status": glosa_status})


def _error_body(request: Request, message: str, error_type: str, details: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "error": {
            "message": message,
            "type": error_type,
            "details": details,
            "path": request.url.path,
        }
    }


def log_error(error: Exception, request: Optional[Request] = None, context: Optional[Dict[str, Any]] = None):
    """Log an unexpected error and report it to Sentry"""
    error_context = {"error_type": type(error).__name__}
    if request:
        error_context.update({
            "method": request.method,
            "path": request.url.path,
            "clinic_id": request.path_params.get("clinic_id"),
        })
    if context:
        error_context.update(context)

    logger.error(f"Unhandled error {error_context}: {error}", exc_info=error)

    # No-op when Sentry was not initialized
    sentry_sdk.capture_exception(error)


async def app_exception_handler(request: Request, exc: AppException):
    """Handle billing exceptions"""
    if exc.status_code >= 500:
        log_error(exc, request)
    else:
        logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.message, type(exc).__name__, exc.details),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body or query did not match the schema"""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Request validation failed on {request.url.path}: {errors}")

    return JSONResponse(
        status_code=422,
        content=_error_body(request, "Requisição inválida", "ValidationError", {"errors": errors}),
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    log_error(exc, request)

    # Don't expose internal errors in production
    is_development = os.getenv("ENVIRONMENT", "development") == "development"
    details: Dict[str, Any] = {}
    if is_development:
        details["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            str(exc) if is_development else "Internal server error",
            type(exc).__name__,
            details,
        ),
    )
