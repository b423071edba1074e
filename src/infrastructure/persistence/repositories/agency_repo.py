from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.enums import AgencyStatus
from src.infrastructure.persistence.models.agency import Agency
from src.infrastructure.persistence.repositories.base import BaseRepository


class AgencyRepository(BaseRepository[Agency]):
    """Repository for the agency (tenant) root entity"""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Agency)

    async def get_active(self, agency_id: str) -> Agency | None:
        """Agency by ID, None when missing or not active"""
        agency = await self.get_by_id(agency_id)
        if agency is None or agency.status != AgencyStatus.ACTIVE.value:
            return None
        return agency
