from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.api.dependencies import CurrentUser, enforce_quota, get_current_user
from mirage.api.v1.schemas import (
    MockEndpointCreate,
    MockEndpointList,
    MockEndpointResponse,
    MockEndpointUpdate,
)
from mirage.dependencies import get_mock_endpoint_service
from mirage.persistence.db import get_db_session
from mirage.services.mock_endpoint_service import MockEndpointService


router = APIRouter()


# ─────────────────────────────────────────────
# Create / list
# ─────────────────────────────────────────────

@router.post(
    "",
    response_model=MockEndpointResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a mock endpoint",
)
async def create_mock_endpoint(
    payload: MockEndpointCreate,
    user: CurrentUser = Depends(enforce_quota("endpoints")),
    session: AsyncSession = Depends(get_db_session),
    service: MockEndpointService = Depends(get_mock_endpoint_service),
):
    """
    Create a new endpoint definition. Counts against the endpoints quota.
    """
    return await service.create(
        session=session,
        user_id=user.id,
        payload=payload.model_dump(),
    )


@router.get(
    "",
    response_model=MockEndpointList,
    summary="List your mock endpoints",
)
async def list_mock_endpoints(
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH"] | None = None,
    is_active: bool | None = None,
    search: str | None = Query(None, max_length=255),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: MockEndpointService = Depends(get_mock_endpoint_service),
):
    items, total, limit, offset = await service.list_endpoints(
        session=session,
        user_id=user.id,
        method=method,
        is_active=is_active,
        search=search,
        limit=limit,
        offset=offset,
    )

    return {
        "endpoints": items,
        "total": total,
        "limit": limit,
        "offset": offset,
    }


# ─────────────────────────────────────────────
# Single endpoint
# ─────────────────────────────────────────────

@router.get(
    "/{endpoint_id}",
    response_model=MockEndpointResponse,
    summary="Get a mock endpoint",
)
async def get_mock_endpoint(
    endpoint_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: MockEndpointService = Depends(get_mock_endpoint_service),
):
    return await service.get(session=session, user_id=user.id, endpoint_id=endpoint_id)


@router.put(
    "/{endpoint_id}",
    response_model=MockEndpointResponse,
    summary="Update a mock endpoint",
)
async def update_mock_endpoint(
    endpoint_id: UUID,
    payload: MockEndpointUpdate,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: MockEndpointService = Depends(get_mock_endpoint_service),
):
    """
    Partial update. Reactivating through `is_active: true` is quota-checked
    the same way as the activate route.
    """
    return await service.update(
        session=session,
        user_id=user.id,
        endpoint_id=endpoint_id,
        changes=payload.changes(),
    )


@router.delete(
    "/{endpoint_id}",
    summary="Deactivate a mock endpoint",
)
async def delete_mock_endpoint(
    endpoint_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db_session),
    service: MockEndpointService = Depends(get_mock_endpoint_service),
):
    """
    Soft delete: the row stays and can be reactivated.
    """
    endpoint = await service.deactivate(
        session=session,
        user_id=user.id,
        endpoint_id=endpoint_id,
    )
    return {
        "message": "Mock endpoint deleted successfully",
        "id": str(endpoint.id),
    }


@router.post(
    "/{endpoint_id}/activate",
    response_model=MockEndpointResponse,
    summary="Reactivate a mock endpoint",
)
async def activate_mock_endpoint(
    endpoint_id: UUID,
    user: CurrentUser = Depends(enforce_quota("endpoints")),
    session: AsyncSession = Depends(get_db_session),
    service: MockEndpointService = Depends(get_mock_endpoint_service),
):
    return await service.activate(
        session=session,
        user_id=user.id,
        endpoint_id=endpoint_id,
    )
