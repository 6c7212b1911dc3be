"""
Exception to JSON response mapping.

Every error body has the shape ``{"detail": str, "status_code": int}``
(validation errors add ``errors``). The request id goes to the logs only;
500 responses never carry exception text.
"""

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError

from urbanfix.exceptions import IssueServiceError, StorageUnavailable
from urbanfix.logging import get_logger

logger = get_logger("api.errors")

RETRY_AFTER_SECONDS = "5"


def _request_id() -> str:
    return structlog.contextvars.get_contextvars().get("request_id", "-")


def error_response(
    status_code: int, detail: str, headers: dict[str, str] | None = None, **extra
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "status_code": status_code, **extra},
        headers=headers,
    )


def storage_unavailable_response() -> JSONResponse:
    """503 telling the client the request is safe to retry."""
    exc = StorageUnavailable()
    return error_response(
        exc.status_code, exc.detail, headers={"Retry-After": RETRY_AFTER_SECONDS}
    )


def _validation_errors(exc: RequestValidationError) -> list[dict]:
    # Raw pydantic errors may embed the rejected input and exception objects
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(IssueServiceError)
    async def issue_service_error_handler(request: Request, exc: IssueServiceError):
        logger.info(
            "request_rejected",
            error_type=type(exc).__name__,
            detail=exc.detail,
            status_code=exc.status_code,
            path=request.url.path,
            request_id=_request_id(),
        )
        if isinstance(exc, StorageUnavailable):
            return storage_unavailable_response()
        return error_response(exc.status_code, exc.detail)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.info(
            "http_exception",
            detail=exc.detail,
            status_code=exc.status_code,
            request_id=_request_id(),
        )
        return error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = _validation_errors(exc)
        logger.info("validation_error", errors=errors, request_id=_request_id())
        return error_response(422, "Validation error", errors=errors)

    @app.exception_handler(OperationalError)
    @app.exception_handler(PoolTimeoutError)
    async def storage_unavailable_handler(request: Request, exc: Exception):
        # Lost connections, lock and statement timeouts, exhausted pool
        logger.error(
            "storage_unavailable",
            error_type=type(exc).__name__,
            error=str(exc),
            request_id=_request_id(),
        )
        return storage_unavailable_response()

    @app.exception_handler(DBAPIError)
    async def storage_error_handler(request: Request, exc: DBAPIError):
        if exc.connection_invalidated:
            logger.error("storage_connection_lost", request_id=_request_id())
            return storage_unavailable_response()
        logger.exception(
            "storage_error", error_type=type(exc).__name__, request_id=_request_id()
        )
        return error_response(500, "Internal server error")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            request_id=_request_id(),
        )
        return error_response(500, "Internal server error")
