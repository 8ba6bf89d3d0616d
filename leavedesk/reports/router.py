"""Reports router — organization-wide aggregates (admins and managers)."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import require_role
from leavedesk.common.constants import MemberRole
from leavedesk.database import get_db
from leavedesk.organizations.models import OrganizationMember
from leavedesk.reports.schemas import EmployeeBalanceRow, LeaveSummaryRow
from leavedesk.reports.service import ReportService

router = APIRouter(prefix="", tags=["reports"])

_readers = require_role(MemberRole.admin, MemberRole.manager)


@router.get("/employee-balances", response_model=list[EmployeeBalanceRow])
async def employee_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    member: OrganizationMember = Depends(_readers),
    db: AsyncSession = Depends(get_db),
):
    """Ledger rows of every member for a year."""
    return await ReportService.employee_balances(
        db, member, year=year or date.today().year,
    )


@router.get("/leave-summary", response_model=list[LeaveSummaryRow])
async def leave_summary(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    member: OrganizationMember = Depends(_readers),
    db: AsyncSession = Depends(get_db),
):
    """Request counts and work-days per leave type and status."""
    return await ReportService.leave_summary(
        db, member, year=year or date.today().year,
    )
