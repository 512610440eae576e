"""
Base repository shared by the timesheet, entry, approval and user tables.
Repositories only read and flush; committing is left to the service layer.
"""

from typing import Generic, TypeVar, Type, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.orm.exc import StaleDataError

from timesheet_manager.core.exceptions import InvalidStateError
from timesheet_manager.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Primary-key access for one mapped table."""

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def create(self, **kwargs) -> ModelType:
        """
        Insert a row and return it with server defaults loaded.

        The row is flushed, not committed, so it joins whatever audit record
        the calling service writes in the same transaction.
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get(self, id: UUID) -> Optional[ModelType]:
        """Row by primary key, or None."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def update(self, instance: ModelType, **kwargs) -> ModelType:
        """
        Update attributes on a loaded instance and flush.

        Goes through the unit of work so mapper features such as the
        optimistic version column stay in effect. A version mismatch surfaces
        as InvalidStateError (409).
        """
        for key, value in kwargs.items():
            setattr(instance, key, value)
        try:
            await self.session.flush()
        except StaleDataError:
            raise InvalidStateError(
                f"{self.model.__name__} was modified concurrently; reload and retry",
                details={"id": str(instance.id)},
            )
        return instance

    async def delete(self, id: UUID) -> bool:
        """Delete by primary key. False when no row matched."""
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)
        )
        await self.session.flush()
        return result.rowcount > 0
