"""Global exception handlers mapping WeldPay errors to JSON envelopes.

    WeldPayError            -> {"error": {...}} with the error's http_status
    RequestValidationError  -> 422 with field-level details
    Exception               -> 500, no internal details leaked
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from weldpay.core.exceptions import WeldPayError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""

    @app.exception_handler(WeldPayError)
    async def weldpay_error_handler(request: Request, exc: WeldPayError) -> JSONResponse:
        level = logging.ERROR if exc.http_status >= 500 else logging.INFO
        logger.log(
            level, "%s on %s: %s", exc.code, request.url.path, exc.message,
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = {
            ".".join(str(loc) for loc in err["loc"] if loc != "body"): err["msg"]
            for err in exc.errors()
        }
        logger.info("Request validation failed on %s: %s", request.url.path, errors)
        return JSONResponse(
            status_code=422,
            content={"error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "errors": errors,
            }},
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}},
        )
