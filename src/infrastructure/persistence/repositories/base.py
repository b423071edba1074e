from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import object_session

from src.infrastructure.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(ABC, Generic[ModelType]):
    """
    Base repository for agency-owned models.

    Reads go through ``_visible``: rows of another agency and soft-deleted
    rows are indistinguishable from missing ones. Subclasses override the
    ``_on_after_*`` hooks to log writes.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]):
        self.db = db
        self.model = model
        self._soft_deletes = hasattr(model, "deleted_at")

    def _scoped(self, stmt: Select, agency_id: str) -> Select:
        # Cast to Any for SQLAlchemy dynamic attribute access (agency_id comes from AgencyMixin)
        model: Any = self.model
        return stmt.where(model.agency_id == agency_id)

    def _visible(self, stmt: Select, agency_id: str | None = None) -> Select:
        """Restrict to live rows, and to one agency when ``agency_id`` is given"""
        model: Any = self.model
        if self._soft_deletes:
            stmt = stmt.where(model.deleted_at.is_(None))
        if agency_id is not None:
            stmt = self._scoped(stmt, agency_id)
        return stmt

    async def get_by_id(self, id: str, agency_id: str | None = None) -> ModelType | None:
        model: Any = self.model
        stmt = self._visible(select(self.model).where(model.id == id), agency_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, obj: ModelType) -> ModelType:
        self.db.add(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        await self._on_after_create(obj)
        return obj

    async def update(self, obj: ModelType) -> ModelType:
        """Flush changes to ``obj``, merging it back first if it was detached"""
        if object_session(obj) is None:
            obj = await self.db.merge(obj)
        await self.db.flush()
        await self.db.refresh(obj)
        await self._on_after_update(obj)
        return obj

    async def _on_after_create(self, obj: ModelType) -> None:
        pass

    async def _on_after_update(self, obj: ModelType) -> None:
        pass
