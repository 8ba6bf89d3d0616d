"""Holiday calendar model consumed by the work-day calculator."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leavedesk.common.constants import HolidayType
from leavedesk.database import Base


class PublicHoliday(Base):
    __tablename__ = "public_holidays"
    __table_args__ = (
        sa.Index("ix_public_holidays_country_date", "country", "date"),
        sa.Index("ix_public_holidays_org_date", "organization_id", "date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    # NULL → public holiday; set → company holiday of that organization
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("organizations.id")
    )
    date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    country: Mapped[str] = mapped_column(sa.String(5), nullable=False, default="DE")
    # NULL → nationwide
    region: Mapped[Optional[str]] = mapped_column(sa.String(10))
    holiday_type: Mapped[HolidayType] = mapped_column(
        sa.Enum(HolidayType, name="holiday_type"),
        nullable=False,
        default=HolidayType.public,
    )
    is_half_day: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    @property
    def is_company_holiday(self) -> bool:
        return self.organization_id is not None

    @property
    def is_national(self) -> bool:
        return self.region is None
