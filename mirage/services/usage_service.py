from datetime import datetime
from typing import List, Dict, Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from mirage.persistence.repositories.usage_repo import UsageRepository


class UsageService:
    """
    Read-only service for inspecting usage records.

    Used by:
    - the user dashboard
    - Admin usage routes
    """

    async def get_user_usage(
        self,
        *,
        session: AsyncSession,
        user_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 500,
    ) -> Dict[str, Any]:

        repo = UsageRepository(session)

        records = await repo.list_for_user(
            user_id=user_id,
            start=start,
            end=end,
            limit=limit,
        )

        return {
            "user_id": str(user_id),
            "total_events": len(records),
            "by_status": self._aggregate_by_status(records),
            "by_pattern": self._aggregate_by_pattern(records),
            "records": [
                {
                    "endpoint_id": str(record.endpoint_id) if record.endpoint_id else None,
                    "method": record.method,
                    "url_pattern": record.url_pattern,
                    "status_code": record.response_status_code,
                    "processing_time_ms": record.processing_time_ms,
                    "timestamp": record.created_at.isoformat() if record.created_at else None,
                }
                for record in records
            ],
        }

    # ─────────────────────────────────────────────
    # Internal helpers
    # ─────────────────────────────────────────────

    def _aggregate_by_status(
        self,
        records: List,
    ) -> Dict[str, int]:
        summary: Dict[str, int] = {}

        for record in records:
            key = str(record.response_status_code)
            summary.setdefault(key, 0)
            summary[key] += 1

        return summary

    def _aggregate_by_pattern(
        self,
        records: List,
    ) -> Dict[str, int]:
        summary: Dict[str, int] = {}

        for record in records:
            key = f"{record.method} {record.url_pattern}"
            summary.setdefault(key, 0)
            summary[key] += 1

        return summary
