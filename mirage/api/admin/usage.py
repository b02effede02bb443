from fastapi import APIRouter, Depends, Query
from uuid import UUID
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from mirage.api.dependencies import require_admin
from mirage.persistence.db import get_db_session
from mirage.services.usage_service import UsageService


router = APIRouter()


@router.get(
    "/user/{user_id}",
    summary="Get usage summary for a user",
)
async def get_user_usage(
    user_id: UUID,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(500, ge=1, le=5000),
    session: AsyncSession = Depends(get_db_session),
    admin=Depends(require_admin),
):
    """
    Inspect mock-serving usage for a specific user.
    """
    service = UsageService()
    return await service.get_user_usage(
        session=session,
        user_id=user_id,
        start=start,
        end=end,
        limit=limit,
    )
