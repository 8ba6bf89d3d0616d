"""Report queries for admins and managers."""

from __future__ import annotations

from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.exceptions import ForbiddenException
from leavedesk.leave import policy
from leavedesk.leave.models import LeaveBalance, LeaveRequest, LeaveType
from leavedesk.organizations.models import OrganizationMember, User
from leavedesk.reports.schemas import EmployeeBalanceRow, LeaveSummaryRow


class ReportService:
    """Organization-wide leave aggregates."""

    @staticmethod
    def _require_reader(actor: OrganizationMember) -> None:
        if not policy.can_view_others(actor.role):
            raise ForbiddenException("Only admins and managers can view reports.")

    @staticmethod
    async def employee_balances(
        db: AsyncSession,
        actor: OrganizationMember,
        *,
        year: int,
    ) -> list[EmployeeBalanceRow]:
        """Every member's ledger rows for *year*."""
        ReportService._require_reader(actor)

        result = await db.execute(
            select(LeaveBalance, User, LeaveType)
            .join(User, LeaveBalance.user_id == User.id)
            .join(LeaveType, LeaveBalance.leave_type_id == LeaveType.id)
            .where(
                LeaveBalance.organization_id == actor.organization_id,
                LeaveBalance.year == year,
            )
            .order_by(User.name, User.email, LeaveType.sort_order)
        )
        return [
            EmployeeBalanceRow(
                user_id=user.id,
                name=user.name,
                email=user.email,
                leave_type_id=leave_type.id,
                leave_type_code=leave_type.code,
                leave_type_name=leave_type.name,
                year=balance.year,
                entitled=balance.entitled,
                carried_over=balance.carried_over,
                adjustment=balance.adjustment,
                used=balance.used,
                pending=balance.pending,
                remaining=balance.remaining,
            )
            for balance, user, leave_type in result.all()
        ]

    @staticmethod
    async def leave_summary(
        db: AsyncSession,
        actor: OrganizationMember,
        *,
        year: int,
    ) -> list[LeaveSummaryRow]:
        """Request count and work-days per leave type and status.

        Requests are attributed to the year they start in.
        """
        ReportService._require_reader(actor)

        result = await db.execute(
            select(
                LeaveType.id,
                LeaveType.code,
                LeaveType.name,
                LeaveRequest.status,
                func.count(LeaveRequest.id),
                func.coalesce(func.sum(LeaveRequest.work_days), 0),
            )
            .join(LeaveType, LeaveRequest.leave_type_id == LeaveType.id)
            .where(
                LeaveRequest.organization_id == actor.organization_id,
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
            .group_by(LeaveType.id, LeaveType.code, LeaveType.name, LeaveRequest.status)
            .order_by(LeaveType.code, LeaveRequest.status)
        )
        return [
            LeaveSummaryRow(
                leave_type_id=type_id,
                leave_type_code=code,
                leave_type_name=name,
                status=status,
                request_count=count,
                total_days=total,
            )
            for type_id, code, name, status, count, total in result.all()
        ]
