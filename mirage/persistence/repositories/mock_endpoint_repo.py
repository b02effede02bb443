from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.persistence.repositories.base import BaseRepository
from mirage.persistence.models.mock_endpoint import MockEndpoint


class MockEndpointRepository(BaseRepository[MockEndpoint]):
    """
    Repository for MockEndpoint model.

    Serving reads (`find_active_by_method`) are cross-tenant;
    management reads are always scoped to an owner.
    """

    model = MockEndpoint

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    # ─────────────────────────────────────────────
    # Serving
    # ─────────────────────────────────────────────

    async def find_active_by_method(self, method: str) -> Sequence[MockEndpoint]:
        """
        All active endpoints for `method`, across every owner.

        Ordered by pattern length desc, then newest first.
        """
        stmt = (
            select(MockEndpoint)
            .where(
                MockEndpoint.method == method,
                MockEndpoint.is_active.is_(True),
            )
            .order_by(
                func.length(MockEndpoint.url_pattern).desc(),
                MockEndpoint.created_at.desc(),
            )
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_all_active(self) -> Sequence[MockEndpoint]:
        stmt = (
            select(MockEndpoint)
            .where(MockEndpoint.is_active.is_(True))
            .order_by(MockEndpoint.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    # ─────────────────────────────────────────────
    # Management
    # ─────────────────────────────────────────────

    async def create(self, *, user_id: UUID, **fields: Any) -> MockEndpoint:
        endpoint = MockEndpoint(user_id=user_id, **fields)
        return await self.add(endpoint)

    async def get_owned(self, endpoint_id: UUID, user_id: UUID) -> MockEndpoint | None:
        stmt = select(MockEndpoint).where(
            MockEndpoint.id == endpoint_id,
            MockEndpoint.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_duplicate(
        self,
        *,
        user_id: UUID,
        method: str,
        url_pattern: str,
        exclude_id: UUID | None = None,
    ) -> MockEndpoint | None:
        """
        Active endpoint of `user_id` already using (method, url_pattern).
        """
        stmt = select(MockEndpoint).where(
            MockEndpoint.user_id == user_id,
            MockEndpoint.method == method,
            MockEndpoint.url_pattern == url_pattern,
            MockEndpoint.is_active.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(MockEndpoint.id != exclude_id)

        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def count_active_for_user(self, user_id: UUID) -> int:
        stmt = select(func.count(MockEndpoint.id)).where(
            MockEndpoint.user_id == user_id,
            MockEndpoint.is_active.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def list_for_user(
        self,
        *,
        user_id: UUID,
        method: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[MockEndpoint], int]:
        """
        Page through one owner's endpoints; returns (items, total).
        """
        conditions = [MockEndpoint.user_id == user_id]

        if method:
            conditions.append(MockEndpoint.method == method)

        if is_active is not None:
            conditions.append(MockEndpoint.is_active.is_(is_active))

        if search:
            like = f"%{search}%"
            conditions.append(
                or_(
                    MockEndpoint.name.ilike(like),
                    MockEndpoint.url_pattern.ilike(like),
                    MockEndpoint.description.ilike(like),
                )
            )

        total_stmt = select(func.count(MockEndpoint.id)).where(*conditions)
        total = (await self.session.execute(total_stmt)).scalar_one()

        stmt = (
            select(MockEndpoint)
            .where(*conditions)
            .order_by(MockEndpoint.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all(), total

    async def update(self, endpoint: MockEndpoint, **changes: Any) -> MockEndpoint:
        for key, value in changes.items():
            setattr(endpoint, key, value)
        await self.session.flush()
        return endpoint
