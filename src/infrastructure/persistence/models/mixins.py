"""
Column mixins shared by the agency, workflow and workflow run tables.

Workflows are audited and soft-deleted (their runs must outlive them);
runs are append-only history and only carry timestamps.
"""
from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

from src.shared.utils.generators import generate_cuid


def utc_now() -> datetime:
    return datetime.now(UTC)


class CuidMixin:
    """CUID string primary key"""

    @declared_attr
    def id(cls) -> Mapped[str]:
        return mapped_column(String, primary_key=True, default=generate_cuid)


class AgencyMixin:
    """Owning agency; rows go when their agency is hard-deleted"""

    @declared_attr
    def agency_id(cls) -> Mapped[str]:
        return mapped_column(
            String,
            ForeignKey("agency.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class TimestampMixin:
    """
    created_at / updated_at, timezone-aware.

    The Python-side default keeps sub-second ordering of "newest first"
    listings on backends whose now() has second resolution.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            default=utc_now,
            server_default=func.now(),
            nullable=False,
            index=True,
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            default=utc_now,
            server_default=func.now(),
            onupdate=utc_now,
            nullable=False,
        )


class SoftDeleteMixin:
    """deleted_at tombstone; repositories hide rows where it is set"""

    @declared_attr
    def deleted_at(cls) -> Mapped[datetime | None]:
        return mapped_column(DateTime(timezone=True), nullable=True, index=True)


class UserAuditMixin(TimestampMixin, SoftDeleteMixin):
    """
    Who created and last changed the row.

    User ids come from the access token subject; users live in the
    identity service, so there is no foreign key. Null means the row was
    written by the system (schedule ticker, seed data).
    """

    @declared_attr
    def created_by(cls) -> Mapped[str | None]:
        return mapped_column(String, nullable=True, index=True)

    @declared_attr
    def updated_by(cls) -> Mapped[str | None]:
        return mapped_column(String, nullable=True)


class MultiTenantModel(CuidMixin, AgencyMixin, TimestampMixin):
    __abstract__ = True


class AuditedMultiTenantModel(CuidMixin, AgencyMixin, UserAuditMixin):
    __abstract__ = True
