from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sqlgate.errors import GatewayError, map_error

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID") or str(uuid.uuid4())


def _error_response(
    *,
    status: int,
    code: str,
    message: str,
    request_id: str,
    details: Optional[List[str]] = None,
    retryable: bool = False,
    extra: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "retryable": retryable,
            "request_id": request_id,
            "extra": extra or {},
        }
    }

    headers = {"X-Request-ID": request_id}
    if retryable:
        headers["Retry-After"] = "2"

    return JSONResponse(status_code=status, content=payload, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers for the FastAPI application."""

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        request_id = _request_id(request)
        status, retryable = map_error(exc.code)
        logger.info(
            "Tool call failed",
            extra={
                "code": exc.code.value,
                "status": status,
                "path": request.url.path,
                "request_id": request_id,
            },
        )
        return _error_response(
            status=status,
            code=exc.code.value,
            message=exc.message,
            request_id=request_id,
            details=exc.details,
            retryable=retryable,
            extra=exc.extra,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id(request)
        logger.exception(
            "Unhandled error", extra={"path": request.url.path, "request_id": request_id}
        )
        return _error_response(
            status=500,
            code="INTERNAL_ERROR",
            message="Internal server error",
            request_id=request_id,
        )
