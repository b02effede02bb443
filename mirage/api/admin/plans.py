from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.api.dependencies import require_admin
from mirage.api.v1.schemas import PlanResponse
from mirage.persistence.db import get_db_session
from mirage.persistence.models.subscription import SubscriptionPlan


router = APIRouter()


@router.get(
    "",
    response_model=List[PlanResponse],
    summary="List all plans, including retired ones",
)
async def list_all_plans(
    session: AsyncSession = Depends(get_db_session),
    admin=Depends(require_admin),
):
    result = await session.execute(
        select(SubscriptionPlan).order_by(SubscriptionPlan.price_monthly.asc())
    )
    return result.scalars().all()
