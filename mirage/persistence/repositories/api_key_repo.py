from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.persistence.repositories.base import BaseRepository
from mirage.persistence.models.api_key import ApiKey
from mirage.persistence.models.user import User


class ApiKeyRepository(BaseRepository[ApiKey]):
    """
    Repository for ApiKey model.
    """

    model = ApiKey

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def find_active_by_hash(
        self,
        key_hash: str,
    ) -> tuple[ApiKey, User] | None:
        """
        Fetch an active, unexpired key together with its owner.
        """
        now = datetime.now(timezone.utc)
        stmt = (
            select(ApiKey, User)
            .join(User, User.id == ApiKey.user_id)
            .where(
                ApiKey.key_hash == key_hash,
                ApiKey.is_active.is_(True),
                or_(ApiKey.expires_at.is_(None), ApiKey.expires_at > now),
            )
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def list_for_user(self, user_id: UUID) -> list[ApiKey]:
        stmt = (
            select(ApiKey)
            .where(ApiKey.user_id == user_id)
            .order_by(ApiKey.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_owned(self, key_id: UUID, user_id: UUID) -> ApiKey | None:
        stmt = select(ApiKey).where(
            ApiKey.id == key_id,
            ApiKey.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def touch_last_used(self, api_key: ApiKey) -> None:
        api_key.last_used_at = datetime.now(timezone.utc)
        await self.session.flush()
