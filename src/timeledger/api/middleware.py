"""RFC 9457 Problem Details responses for every error the API can raise."""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.errors import (
    ConflictError,
    NotFoundError,
    StoreError,
    TimeLedgerError,
    TransportError,
    ValidationError,
)
from ..utils.logging_config import get_logger, log_exception

logger = get_logger("api")

DEFAULT_TITLES = {
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


def problem_response(
    request: Request,
    status_code: int,
    title: Optional[str] = None,
    detail: Optional[str] = None,
    **extra_fields,
) -> JSONResponse:
    """Create a JSON response in RFC 9457 Problem Details format."""
    problem = {
        "type": f"https://httpstatuses.com/{status_code}",
        "title": title or DEFAULT_TITLES.get(status_code, "HTTP Error"),
        "status": status_code,
        "instance": str(request.url),
    }
    if detail:
        problem["detail"] = detail
    problem.update(extra_fields)

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(problem),
        media_type="application/problem+json",
    )


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return problem_response(request, status.HTTP_404_NOT_FOUND, "Not Found", str(exc))


async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return problem_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation Error",
        str(exc),
        errors=exc.errors,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return problem_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation Error",
        "Request validation failed",
        errors=exc.errors(),
    )


async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return problem_response(
        request,
        status.HTTP_409_CONFLICT,
        "Conflict",
        str(exc),
        record_ids=[str(record_id) for record_id in exc.record_ids],
    )


async def transport_handler(request: Request, exc: TransportError) -> JSONResponse:
    logger.warning(f"Remote failure on {request.url.path}: {exc}")
    return problem_response(request, status.HTTP_502_BAD_GATEWAY, "Bad Gateway", str(exc))


async def store_handler(request: Request, exc: TimeLedgerError) -> JSONResponse:
    log_exception("api", exc, {"path": request.url.path})
    return problem_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Server Error",
        "The local store failed to complete the request",
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return problem_response(request, exc.status_code, detail=str(exc.detail) if exc.detail else None)


def register_exception_handlers(app: FastAPI) -> None:
    """Map every domain error to a problem+json response."""
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ValidationError, validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ConflictError, conflict_handler)
    app.add_exception_handler(TransportError, transport_handler)
    app.add_exception_handler(StoreError, store_handler)
    app.add_exception_handler(TimeLedgerError, store_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
