import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any

import psutil
from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import JSONResponse, Response

from mirage.api.dependencies import CurrentUser, enforce_quota
from mirage.config import settings
from mirage.dependencies import get_dispatch_service, get_usage_recorder
from mirage.domain.errors import InvalidInputError, StoreUnavailableError
from mirage.persistence.db import get_db_session
from mirage.persistence.repositories.mock_endpoint_repo import MockEndpointRepository
from mirage.services.dispatch_service import (
    MockDispatchService,
    MockRequest,
    NoMatch,
    ValidationFailure,
)
from mirage.services.usage_recorder import UsageRecorder

logger = logging.getLogger(__name__)

router = APIRouter()

STARTED_AT = time.monotonic()

MOCK_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH"]

# Statuses that must not carry a body.
_EMPTY_BODY_STATUSES = {204, 304}


async def read_json_body(request: Request) -> Any:
    """
    Parse the request body leniently.

    Used for:
    - mock dispatch (schema validation input)

    Empty body -> None. Anything that is not valid JSON is passed on as
    text, so a schema expecting an object rejects it. A body that is not
    UTF-8 at all is rejected with 400.
    """
    raw = await request.body()
    if not raw:
        return None

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.info(f"Rejected undecodable body for {request.method} {request.url.path}")
        raise InvalidInputError(
            "Request body is not valid UTF-8",
            details={"field": "body", "position": exc.start},
        ) from exc

    try:
        return json.loads(text)
    except ValueError:
        return text


def render(result) -> Response:
    if isinstance(result, NoMatch):
        return JSONResponse(status_code=result.status_code, content=result.to_payload())

    if isinstance(result, ValidationFailure):
        return JSONResponse(
            status_code=result.status_code,
            content=jsonable_encoder(result.to_payload()),
            headers=result.headers,
        )

    if result.status_code < 200 or result.status_code in _EMPTY_BODY_STATUSES:
        return Response(status_code=result.status_code, headers=result.headers)

    return JSONResponse(
        status_code=result.status_code,
        content=jsonable_encoder(result.body),
        headers=result.headers,
    )


# ─────────────────────────────────────────────
# Serving
# ─────────────────────────────────────────────

@router.api_route(
    "/mock/{path:path}",
    methods=MOCK_METHODS,
    summary="Serve a configured mock response",
    tags=["Mock Serving"],
)
async def serve_mock(
    path: str,
    request: Request,
    user: CurrentUser = Depends(enforce_quota("requests", optional_auth=True)),
    service: MockDispatchService = Depends(get_dispatch_service),
):
    """
    Any method under /mock/ is matched against the stored endpoints with
    the /mock prefix removed.
    """
    mock_request = MockRequest(
        method=request.method,
        path="/" + path,
        headers=dict(request.headers),
        body=await read_json_body(request),
        query=dict(request.query_params),
        caller_id=user.id,
    )

    logger.info(
        f"Processing mock request {mock_request.method} {mock_request.path} "
        f"(user-agent={request.headers.get('user-agent')})"
    )

    result = await service.dispatch(mock_request)
    return render(result)


# ─────────────────────────────────────────────
# Operational
# ─────────────────────────────────────────────

@router.get("/health", summary="Service health", tags=["Health"])
async def service_health():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "environment": settings.ENV,
    }


@router.get("/metrics", summary="Process metrics", tags=["Health"])
async def metrics(
    recorder: UsageRecorder = Depends(get_usage_recorder),
):
    process = psutil.Process(os.getpid())
    memory = process.memory_info()
    cpu = process.cpu_times()

    return {
        "service": settings.APP_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "memory": {"rss": memory.rss, "vms": memory.vms},
        "cpu": {"user": cpu.user, "system": cpu.system},
        "usage_queue": {
            "pending": recorder.queue.qsize(),
            "dropped": recorder.dropped,
        },
        "environment": settings.ENV,
    }


@router.get("/debug/mocks", summary="List every active mock endpoint", tags=["Mock Serving"])
async def list_available_mocks(
    session: AsyncSession = Depends(get_db_session),
):
    try:
        endpoints = await MockEndpointRepository(session).list_all_active()
    except SQLAlchemyError as exc:
        logger.error(f"Failed to list available mocks: {exc}")
        raise StoreUnavailableError("Failed to retrieve available mock endpoints") from exc

    mocks = [
        {
            "id": str(endpoint.id),
            "name": endpoint.name,
            "method": endpoint.method,
            "url_pattern": endpoint.url_pattern,
            "mock_url": f"/mock{endpoint.url_pattern}",
            "response_status_code": endpoint.response_status_code,
            "response_delay_ms": endpoint.response_delay_ms,
            "created_at": endpoint.created_at.isoformat() if endpoint.created_at else None,
        }
        for endpoint in endpoints
    ]

    return {
        "total": len(mocks),
        "count": len(mocks),
        "mocks": mocks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
