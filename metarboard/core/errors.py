"""Structured error response handlers.

Every error — validation, bad station query, upstream, or unexpected — returns:

    {
      "error": {
        "code": "DESCRIPTIVE_CODE",
        "message": "Human-readable explanation of what went wrong.",
        "request_id": "abc123...",
        ...extra fields when relevant
      }
    }
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from metarboard.services.awc_client import InvalidStationQuery, ProviderError

logger = logging.getLogger(__name__)

_STATUS_CODE_MAP: dict[int, str] = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "UPSTREAM_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def _error_body(request: Request, code: str, message: str, **extra) -> dict:
    request_id = getattr(request.state, "request_id", None)
    return {"error": {"code": code, "message": message, "request_id": request_id, **extra}}


def register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        if isinstance(exc.detail, dict):
            request_id = getattr(request.state, "request_id", None)
            body = {"error": {**exc.detail, "request_id": request_id}}
        else:
            body = _error_body(
                request, _STATUS_CODE_MAP.get(exc.status_code, "ERROR"), str(exc.detail)
            )

        return JSONResponse(
            status_code=exc.status_code,
            content=body,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        fields = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            fields.append({"field": loc, "message": err["msg"], "type": err["type"]})

        return JSONResponse(
            status_code=422,
            content=_error_body(
                request,
                "VALIDATION_ERROR",
                f"{len(fields)} validation error(s) in your request.",
                details=fields,
            ),
        )

    @app.exception_handler(InvalidStationQuery)
    async def invalid_station_handler(
        request: Request, exc: InvalidStationQuery
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=_error_body(request, "INVALID_STATION", str(exc)),
        )

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
        logger.warning("Upstream weather API error: %s", exc)
        return JSONResponse(
            status_code=502,
            content=_error_body(
                request,
                "UPSTREAM_ERROR",
                "The aviation weather service did not return usable data.",
                upstream_status=exc.status,
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        logger.exception("Unhandled error (request_id=%s)", request_id)

        return JSONResponse(
            status_code=500,
            content=_error_body(
                request,
                "INTERNAL_ERROR",
                "An unexpected error occurred. "
                "If this persists, report it with the request_id.",
            ),
        )
