from datetime import date, datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.persistence.repositories.base import BaseRepository
from mirage.persistence.models.usage_record import UsageRecord


def month_bounds(today: date) -> tuple[date, date]:
    """
    Return [first day of month, first day of next month) for `today`.
    """
    start = today.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


class UsageRepository(BaseRepository[UsageRecord]):
    """
    Repository for UsageRecord model.

    Tracks served mock requests for:
    - quota enforcement
    - analytics
    """

    model = UsageRecord

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create(
        self,
        *,
        user_id: UUID,
        endpoint_id: UUID | None,
        method: str,
        url_pattern: str,
        response_status_code: int | None,
        processing_time_ms: int | None,
    ) -> UsageRecord:
        """
        Append a usage record.
        """
        record = UsageRecord(
            user_id=user_id,
            endpoint_id=endpoint_id,
            method=method,
            url_pattern=url_pattern,
            response_status_code=response_status_code,
            processing_time_ms=processing_time_ms,
        )
        return await self.add(record)

    async def count_for_month(
        self,
        user_id: UUID,
        today: date | None = None,
    ) -> int:
        """
        Count usage records in the UTC calendar month containing `today`.
        """
        today = today or datetime.now(timezone.utc).date()
        start, end = month_bounds(today)

        stmt = select(func.count(UsageRecord.id)).where(
            UsageRecord.user_id == user_id,
            UsageRecord.date_key >= start,
            UsageRecord.date_key < end,
        )

        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_for_user(
        self,
        *,
        user_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 500,
    ) -> Sequence[UsageRecord]:
        """
        Fetch usage records for a user, newest first.
        """
        stmt = select(UsageRecord).where(UsageRecord.user_id == user_id)

        if start:
            stmt = stmt.where(UsageRecord.created_at >= start)

        if end:
            stmt = stmt.where(UsageRecord.created_at <= end)

        stmt = stmt.order_by(UsageRecord.created_at.desc()).limit(limit)

        result = await self.session.execute(stmt)
        return result.scalars().all()
