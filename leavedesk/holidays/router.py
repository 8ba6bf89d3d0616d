"""Holiday router — read-only calendar for the caller's organization."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_member
from leavedesk.database import get_db
from leavedesk.holidays.schemas import HolidayResponse
from leavedesk.holidays.service import HolidayService
from leavedesk.organizations.models import Organization, OrganizationMember

router = APIRouter(prefix="", tags=["holidays"])


# ── GET / ───────────────────────────────────────────────────────────

@router.get("", response_model=list[HolidayResponse])
async def get_holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    country: Optional[str] = Query(None, min_length=2, max_length=5),
    region: Optional[str] = Query(None, min_length=1, max_length=10),
    include_company: bool = Query(True),
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Holidays of a year; country and region default to the organization's."""
    organization = await db.get(Organization, member.organization_id)
    return await HolidayService.get_holidays(
        db,
        year=year or date.today().year,
        country=country or organization.country,
        region=region or organization.region,
        organization_id=member.organization_id,
        include_company=include_company,
    )
