"""
Maps domain exceptions to HTTP responses.

Every error body has the same shape: ``{"error", "message", "details"}``.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from src.domain.exceptions import (AgencyNotFoundException, AgencyOpsException,
                                   AuthenticationException,
                                   AuthorizationException,
                                   ResourceNotFoundException,
                                   ValidationException)
from src.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

EXCEPTION_STATUS: dict[type[AgencyOpsException], int] = {
    ValidationException: status.HTTP_400_BAD_REQUEST,
    AuthenticationException: status.HTTP_401_UNAUTHORIZED,
    AuthorizationException: status.HTTP_403_FORBIDDEN,
    AgencyNotFoundException: status.HTTP_403_FORBIDDEN,
    ResourceNotFoundException: status.HTTP_404_NOT_FOUND,
}


def status_for_exception(exc: AgencyOpsException) -> int:
    """Resolve a domain exception to an HTTP status, defaulting to 500."""
    for exc_type in type(exc).__mro__:
        if exc_type in EXCEPTION_STATUS:
            return EXCEPTION_STATUS[exc_type]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def domain_exception_handler(request: Request, exc: AgencyOpsException) -> JSONResponse:
    status_code = status_for_exception(exc)
    if status_code >= 500:
        logger.error("Unhandled domain error on %s: %s", request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    body = ValidationException("Invalid request", errors=errors).to_dict()
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def persistence_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Persistence failure on %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "PERSISTENCE_ERROR",
            "message": "The request could not be completed",
            "details": {},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AgencyOpsException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, persistence_exception_handler)
