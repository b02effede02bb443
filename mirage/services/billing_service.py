from dataclasses import dataclass, asdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, Literal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from mirage.config import settings
from mirage.domain.errors import QuotaExceededError
from mirage.persistence.repositories.mock_endpoint_repo import MockEndpointRepository
from mirage.persistence.repositories.subscription_repo import SubscriptionRepository
from mirage.persistence.repositories.usage_repo import UsageRepository, month_bounds


QuotaType = Literal["requests", "endpoints"]

UPGRADE_URL = "/api/v1/subscription/plans"


@dataclass
class PlanLimits:
    plan_name: str
    max_endpoints: int
    max_requests_per_month: int
    max_request_delay_ms: int


@dataclass
class UsageStats:
    plan_name: str
    current_period_requests: int
    max_requests: int
    requests_remaining: int
    current_period_endpoints: int
    max_endpoints: int
    endpoints_remaining: int
    max_request_delay_ms: int
    period_start: datetime
    period_end: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["period_start"] = self.period_start.isoformat()
        data["period_end"] = self.period_end.isoformat()
        return data


class BillingService:
    """
    Handles plan limits and quota enforcement.

    Usage is recomputed from storage on every check; there is no
    in-memory counter and no explicit monthly reset.
    """

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    async def get_plan_limits(
        self,
        session: AsyncSession,
        user_id: UUID,
    ) -> PlanLimits:
        repo = SubscriptionRepository(session)
        sub = await repo.get_active_for_user(user_id)

        if sub is None or sub.plan is None:
            return PlanLimits(
                plan_name="free",
                max_endpoints=settings.FREE_MAX_ENDPOINTS,
                max_requests_per_month=settings.FREE_MAX_REQUESTS_PER_MONTH,
                max_request_delay_ms=settings.FREE_MAX_REQUEST_DELAY_MS,
            )

        return PlanLimits(
            plan_name=sub.plan.name,
            max_endpoints=sub.plan.max_endpoints,
            max_requests_per_month=sub.plan.max_requests_per_month,
            max_request_delay_ms=sub.plan.max_request_delay_ms,
        )

    async def get_usage_stats(
        self,
        session: AsyncSession,
        user_id: UUID,
        today: date | None = None,
    ) -> UsageStats:
        today = today or datetime.now(timezone.utc).date()

        limits = await self.get_plan_limits(session, user_id)
        requests_used = await UsageRepository(session).count_for_month(user_id, today)
        endpoints_used = await MockEndpointRepository(session).count_active_for_user(user_id)

        start, end = month_bounds(today)

        return UsageStats(
            plan_name=limits.plan_name,
            current_period_requests=requests_used,
            max_requests=limits.max_requests_per_month,
            requests_remaining=max(0, limits.max_requests_per_month - requests_used),
            current_period_endpoints=endpoints_used,
            max_endpoints=limits.max_endpoints,
            endpoints_remaining=max(0, limits.max_endpoints - endpoints_used),
            max_request_delay_ms=limits.max_request_delay_ms,
            period_start=datetime.combine(start, time.min, tzinfo=timezone.utc),
            period_end=datetime.combine(end, time.min, tzinfo=timezone.utc) - timedelta(microseconds=1),
        )

    async def assert_quota(
        self,
        session: AsyncSession,
        user_id: UUID,
        quota_type: QuotaType,
    ) -> UsageStats:
        """
        Raise QuotaExceededError when `quota_type` has nothing remaining.
        """
        stats = await self.get_usage_stats(session, user_id)

        if quota_type == "requests":
            exhausted = stats.requests_remaining <= 0
            message = f"Monthly request limit exceeded ({stats.max_requests} requests)"
        else:
            exhausted = stats.endpoints_remaining <= 0
            message = f"Endpoint limit exceeded ({stats.max_endpoints} endpoints)"

        if exhausted:
            raise QuotaExceededError(
                message,
                details={
                    "quota_type": quota_type,
                    "usage_stats": stats.to_dict(),
                    "upgrade_url": UPGRADE_URL,
                },
            )

        return stats
