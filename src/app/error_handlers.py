from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.app.config import settings
from src.app.domain.errors import (
    DomainError,
    ForbiddenError,
    NotFoundError,
    RecipeValidationError,
    RepositoryError,
)
from src.services.errors import ServiceError

logger = logging.getLogger(__name__)


def _status_for_domain_error(error: DomainError) -> int:
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ForbiddenError):
        return 403
    if isinstance(error, RecipeValidationError):
        return 400
    return 500


def error_body(message: str, details: str | None = None) -> dict[str, str]:
    body = {"error": message}
    if details and settings.exposes_error_details:
        body["details"] = details
    return body


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    logger.warning(
        "Service error on %s %s: status=%d type=%s",
        request.method, request.url.path, exc.status_code, type(exc).__name__,
    )
    return JSONResponse(status_code=exc.status_code, content=error_body(str(exc)))


async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    status_code = _status_for_domain_error(exc)
    if isinstance(exc, RepositoryError):
        logger.error("Repository failure on %s %s: %s", request.method, request.url.path, exc)
        content = error_body(f"Failed to {exc.operation.replace('_', ' ')}", exc.reason)
    else:
        logger.info("Request rejected on %s %s: %s", request.method, request.url.path, exc)
        content = error_body(str(exc))
    return JSONResponse(status_code=status_code, content=content)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, handle_service_error)
    app.add_exception_handler(DomainError, handle_domain_error)
