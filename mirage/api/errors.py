import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.responses import JSONResponse

from mirage.domain.errors import MirageError, StoreUnavailableError

logger = logging.getLogger(__name__)


def error_body(
    request: Request,
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "message": message,
        "code": code,
        "details": details,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }


async def handle_mirage_error(request: Request, exc: MirageError) -> JSONResponse:
    if isinstance(exc, StoreUnavailableError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc.__cause__)
        body = error_body(request, "Internal server error", exc.code)
    else:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        body = error_body(request, exc.message, exc.code, exc.details)

    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(body))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = {
        "errors": [
            {
                "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                "message": error.get("msg"),
            }
            for error in exc.errors()
        ]
    }
    body = error_body(request, "Invalid request", "VALIDATION_ERROR", details)
    return JSONResponse(status_code=400, content=jsonable_encoder(body))


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    body = error_body(request, "Internal server error", "INTERNAL_ERROR")
    return JSONResponse(status_code=500, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MirageError, handle_mirage_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
