from typing import Generic, TypeVar, Type, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from mirage.persistence.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository.

    Concrete repositories should extend this class
    and provide the model via the `model` attribute.

    Repositories only flush; committing is the service layer's call.
    """

    model: Type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    # ─────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────

    async def add(self, instance: ModelType) -> ModelType:
        self.session.add(instance)
        await self.session.flush()
        return instance

    # ─────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────

    async def get_by_id(self, id) -> Optional[ModelType]:
        stmt = select(self.model).where(self.model.id == id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    # ─────────────────────────────────────────────
    # Persistence
    # ─────────────────────────────────────────────

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def refresh(self, instance: ModelType) -> ModelType:
        await self.session.refresh(instance)
        return instance

    async def release(self) -> None:
        """
        End the open transaction and return the connection to the pool.

        Instances already loaded stay readable; the session reconnects on
        its next query.
        """
        await self.session.close()
