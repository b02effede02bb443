from datetime import datetime, timezone

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.persistence.repositories.base import BaseRepository
from mirage.persistence.models.subscription import Subscription, SubscriptionPlan


class SubscriptionRepository(BaseRepository[Subscription]):
    """
    Repository for Subscription model.

    Handles persistence for plans, status, and validity.
    """

    model = Subscription

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def get_active_for_user(
        self,
        user_id
    ) -> Subscription | None:
        """
        Fetch the current subscription for a user.

        When several rows qualify the most recently started one wins.
        """
        now = datetime.now(timezone.utc)

        stmt = (
            select(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status == "active",
                Subscription.started_at <= now,
                or_(
                    Subscription.expires_at.is_(None),
                    Subscription.expires_at > now,
                ),
            )
            .order_by(Subscription.started_at.desc())
            .limit(1)
        )

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_plans(self) -> list[SubscriptionPlan]:
        stmt = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.price_monthly.asc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
