"""
Error taxonomy for the HTTP surface.
Every externally triggered operation ends in either a normal response or an ApiError,
which is rendered as {"error": ..., "details": ...} with its status code.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base error rendered as a structured JSON response."""

    status_code: int = 500

    def __init__(self, message: str, details: Any = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InputValidationError(ApiError):
    """Required field absent or malformed. Never retried."""

    status_code = 400


class UpstreamError(ApiError):
    """M-Pesa OAuth or STK push failed (network error, non-2xx, open circuit)."""

    status_code = 500


class NotificationError(ApiError):
    """E-mail could not be sent."""

    status_code = 500


class ContentMissing(ApiError):
    """Requested file is not present in content storage."""

    status_code = 404


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info(
            "request_validation_failed",
            extra={"path": request.url.path, "method": request.method},
        )
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})
