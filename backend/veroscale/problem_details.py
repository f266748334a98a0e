"""RFC 7807 Problem Details helpers."""
from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .domain_errors import DomainError, PersistenceError

logger = logging.getLogger(__name__)


def build_problem_details_response(exc: DomainError) -> JSONResponse:
    """Render DomainError as RFC 7807 payload with stable domain code."""
    try:
        title = HTTPStatus(exc.http_status).phrase
    except ValueError:
        title = "Domain Error"

    payload: dict[str, object] = {
        "type": f"https://api.veroscale.local/problems/{exc.code.lower()}",
        "title": title,
        "status": exc.http_status,
        "detail": exc.message,
        "code": exc.code,
    }
    # Backend error text is logged, never sent to clients.
    if exc.details is not None and not isinstance(exc, PersistenceError):
        payload["details"] = exc.details

    return JSONResponse(
        status_code=exc.http_status,
        content=payload,
        media_type="application/problem+json",
    )


async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        logger.error(
            "Persistence failure on %s %s: %s",
            request.method,
            request.url.path,
            (exc.details or {}).get("original"),
        )
    return build_problem_details_response(exc)


async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg")}
        for err in exc.errors()
    ]
    return build_problem_details_response(
        DomainError(
            code="VALIDATION_ERROR",
            http_status=400,
            message="Request validation failed",
            details={"errors": errors},
        )
    )
