"""Holiday lookups for a tenant's country and region."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import extract, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.config import settings
from leavedesk.holidays.models import PublicHoliday
from leavedesk.organizations.models import Organization


class HolidayService:
    """Read-only access to public and company holidays."""

    @staticmethod
    def _scoped_query(
        *,
        country: str,
        region: Optional[str],
        organization_id: Optional[uuid.UUID],
        include_company: bool,
        all_regions: bool = False,
    ):
        """Holidays of *country* plus, when asked, the organization's own days.

        Without a *region* only nationwide holidays apply, unless
        *all_regions* lists every region's holidays.
        """
        query = select(PublicHoliday)
        if include_company and organization_id is not None:
            # Public holidays of the country plus the organization's own days
            query = query.where(
                or_(
                    PublicHoliday.organization_id.is_(None),
                    PublicHoliday.organization_id == organization_id,
                ),
                or_(
                    PublicHoliday.organization_id.is_not(None),
                    PublicHoliday.country == country,
                ),
            )
        else:
            query = query.where(
                PublicHoliday.organization_id.is_(None),
                PublicHoliday.country == country,
            )

        if region:
            query = query.where(
                or_(PublicHoliday.region.is_(None), PublicHoliday.region == region)
            )
        elif not all_regions:
            query = query.where(PublicHoliday.region.is_(None))
        return query

    @staticmethod
    async def get_holidays(
        db: AsyncSession,
        *,
        year: int,
        country: Optional[str] = None,
        region: Optional[str] = None,
        organization_id: Optional[uuid.UUID] = None,
        include_company: bool = True,
    ) -> list[PublicHoliday]:
        """List holidays of one year, nationwide ones plus those of *region*.

        With no *region* every region of the country is listed.
        """
        query = HolidayService._scoped_query(
            country=country or settings.DEFAULT_COUNTRY,
            region=region,
            organization_id=organization_id,
            include_company=include_company,
            all_regions=True,
        )
        query = query.where(extract("year", PublicHoliday.date) == year).order_by(
            PublicHoliday.date
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_holiday_dates(
        db: AsyncSession,
        organization: Organization,
        start_date: date,
        end_date: date,
    ) -> set[date]:
        """Dates in ``[start_date, end_date]`` that are non-working for *organization*.

        Half-day holidays are returned like full ones and therefore charge 0.
        An organization without a region only observes nationwide holidays.
        """
        query = HolidayService._scoped_query(
            country=organization.country or settings.DEFAULT_COUNTRY,
            region=organization.region,
            organization_id=organization.id,
            include_company=True,
        ).where(
            PublicHoliday.date >= start_date,
            PublicHoliday.date <= end_date,
        )
        result = await db.execute(query)
        return {h.date for h in result.scalars().all()}
