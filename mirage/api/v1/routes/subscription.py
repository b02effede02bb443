from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.api.dependencies import CurrentUser, quota_exempt
from mirage.api.v1.schemas import PlanResponse
from mirage.dependencies import get_billing_service
from mirage.persistence.db import get_db_session
from mirage.persistence.repositories.subscription_repo import SubscriptionRepository
from mirage.services.billing_service import BillingService


router = APIRouter()


@router.get(
    "/plans",
    response_model=List[PlanResponse],
    summary="List available plans",
)
async def list_plans(
    session: AsyncSession = Depends(get_db_session),
):
    return await SubscriptionRepository(session).list_plans()


@router.get(
    "",
    summary="Your current plan and usage",
)
async def current_subscription(
    user: CurrentUser = Depends(quota_exempt),
    session: AsyncSession = Depends(get_db_session),
    billing: BillingService = Depends(get_billing_service),
):
    """
    Users without an active subscription are on the free plan.
    """
    stats = await billing.get_usage_stats(session, user.id)
    return {
        "plan": stats.plan_name,
        "usage": stats.to_dict(),
    }
