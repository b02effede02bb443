from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mirage.persistence.repositories.base import BaseRepository
from mirage.persistence.models.user import User


class UserRepository(BaseRepository[User]):
    """
    Repository for User model.
    """

    model = User

    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def get_by_email(self, email: str) -> User | None:
        """
        Fetch a user by email (case-insensitive).
        """
        stmt = select(User).where(User.email == email.lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        email: str,
        password_hash: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        user = User(
            email=email.lower(),
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
        )
        return await self.add(user)
