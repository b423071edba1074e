from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from src.domain.enums import AgencyStatus
from src.infrastructure.persistence.database import Base
from src.infrastructure.persistence.models.mixins import (CuidMixin,
                                                          TimestampMixin)


class Agency(CuidMixin, TimestampMixin, Base):
    """
    Root tenant entity; every workflow and run belongs to exactly one agency.

    Note: Agency does not have an agency_id since it is the root of the hierarchy.
    """

    __tablename__ = "agency"

    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=AgencyStatus.ACTIVE.value, index=True
    )

    __table_args__ = (
        CheckConstraint(f"status IN {tuple(AgencyStatus.values())}", name="agency_status_check"),
    )

    def __repr__(self):
        return f"<Agency(id={self.id}, name={self.name})>"
