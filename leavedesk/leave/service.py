"""Leave service layer — request lifecycle on top of the balance ledger.

Business logic:
  - Create: work-day count with regional holidays, overlap guard, reservation
  - Approve / reject / withdraw / cancel with the matching ledger reversal
  - Admins recording leave for a member (stored directly as approved)
  - Request, approval queue, balance and leave type reads

Every transition runs all of its checks first, then claims the status change
with a conditional UPDATE on the request row, then mutates the ledger and
writes history. The caller's session commits or rolls back the whole unit.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import (
    ApprovalDecision,
    LeaveEventType,
    LeaveStatus,
)
from leavedesk.common.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    OverlapException,
    ValidationException,
)
from leavedesk.common.pagination import PaginatedResponse, PaginationParams, paginate
from leavedesk.holidays.service import HolidayService
from leavedesk.leave import policy
from leavedesk.leave.ledger import BalanceKey, BalanceLedger
from leavedesk.leave.models import LeaveApproval, LeaveBalance, LeaveRequest, LeaveType
from leavedesk.leave.overlap import has_overlapping_request
from leavedesk.leave.schemas import (
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestDetail,
    LeaveRequestOut,
    LeaveTypeOut,
)
from leavedesk.leave.workdays import compute_work_days
from leavedesk.notifications.events import LeaveEvent, enqueue_event
from leavedesk.organizations.models import Organization, OrganizationMember
from leavedesk.organizations.service import MembershipService

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave request lifecycle and reads, scoped to the actor's organization."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _balance_key(leave_req: LeaveRequest) -> BalanceKey:
        return BalanceKey(
            leave_req.organization_id,
            leave_req.user_id,
            leave_req.leave_type_id,
            leave_req.balance_year,
        )

    @staticmethod
    async def _get_visible_leave_type(
        db: AsyncSession,
        organization_id: uuid.UUID,
        leave_type_id: uuid.UUID,
    ) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None or leave_type.organization_id not in (None, organization_id):
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def _load_request(
        db: AsyncSession,
        actor: OrganizationMember,
        request_id: uuid.UUID,
        *,
        with_approvals: bool = False,
    ) -> LeaveRequest:
        """Fetch a request of the actor's organization or raise NotFound."""
        query = select(LeaveRequest).where(
            LeaveRequest.id == request_id,
            LeaveRequest.organization_id == actor.organization_id,
        )
        if with_approvals:
            query = query.options(selectinload(LeaveRequest.approvals)).execution_options(
                populate_existing=True
            )
        result = await db.execute(query)
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    async def _claim_transition(
        db: AsyncSession,
        leave_req: LeaveRequest,
        action: str,
        expected: LeaveStatus,
        target: LeaveStatus,
        **values,
    ) -> LeaveRequest:
        """Move *leave_req* from *expected* to *target* with one conditional UPDATE.

        When another transaction already moved the row the UPDATE matches
        nothing and InvalidTransition is raised before the ledger is touched.
        """
        result = await db.execute(
            update(LeaveRequest)
            .where(LeaveRequest.id == leave_req.id, LeaveRequest.status == expected)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        current = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == leave_req.id)
            .execution_options(populate_existing=True)
        )
        leave_req = current.scalars().one()
        if result.rowcount == 0:
            raise InvalidTransitionException(action, leave_req.status.value)
        return leave_req

    @staticmethod
    def _build_event(
        event_type: LeaveEventType,
        leave_req: LeaveRequest,
        leave_type: LeaveType,
        actor_id: uuid.UUID,
        comment: Optional[str] = None,
    ) -> LeaveEvent:
        return LeaveEvent(
            type=event_type,
            request_id=leave_req.id,
            organization_id=leave_req.organization_id,
            employee_id=leave_req.user_id,
            leave_type=leave_type.code,
            start_date=leave_req.start_date,
            end_date=leave_req.end_date,
            work_days=leave_req.work_days,
            actor_id=actor_id,
            comment=comment,
        )

    # ─────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_request(
        db: AsyncSession,
        actor: OrganizationMember,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Submit leave for the actor, or record it for a member as an admin.

        Own requests start ``pending`` and reserve their work-days. Leave an
        admin records for another member is stored as ``approved`` and charged
        to ``used`` straight away, with the admin as approver.
        """
        now = datetime.now(timezone.utc)
        target_user_id = data.user_id or actor.user_id
        on_behalf = target_user_id != actor.user_id

        # ── Who ─────────────────────────────────────────────────────
        if on_behalf:
            if not policy.can_record_for_others(actor.role):
                raise ForbiddenException(
                    "Only administrators can record leave for other members."
                )
            member = await MembershipService.get_member(
                db, actor.organization_id, target_user_id
            )
        else:
            member = actor

        # ── What ────────────────────────────────────────────────────
        leave_type = await LeaveService._get_visible_leave_type(
            db, actor.organization_id, data.leave_type_id
        )
        if not leave_type.is_active:
            raise ValidationException(
                {"leave_type_id": [f"{leave_type.name} is no longer available."]}
            )
        if (data.start_half_day or data.end_half_day) and not leave_type.allow_half_days:
            raise ValidationException(
                {"half_day": [f"{leave_type.name} cannot be taken in half days."]}
            )
        if data.end_date < data.start_date:
            raise ValidationException(
                {"end_date": ["end_date must be on or after start_date."]}
            )

        # ── How much ────────────────────────────────────────────────
        organization = await db.get(Organization, actor.organization_id)
        if organization is None:
            raise NotFoundException("Organization", str(actor.organization_id))
        holidays = await HolidayService.get_holiday_dates(
            db, organization, data.start_date, data.end_date
        )
        work_days = compute_work_days(
            data.start_date,
            data.end_date,
            holidays,
            data.start_half_day,
            data.end_half_day,
        )
        if work_days <= 0:
            raise ValidationException(
                {"dates": ["No work days found in the selected range "
                           "(all days may be weekends or holidays)."]}
            )

        # ── Overlap ─────────────────────────────────────────────────
        if await has_overlapping_request(
            db, target_user_id, data.start_date, data.end_date
        ):
            raise OverlapException()

        # ── Ledger ──────────────────────────────────────────────────
        key = BalanceKey(
            actor.organization_id, target_user_id, leave_type.id, data.start_date.year
        )
        await BalanceLedger.ensure_balance(
            db, key, leave_type, joined_on=member.joined_on
        )
        allow_negative = not leave_type.enforces_balance
        if on_behalf:
            await BalanceLedger.record_used(
                db, key, work_days, allow_negative=allow_negative
            )
            status = LeaveStatus.approved
        else:
            await BalanceLedger.reserve_pending(
                db, key, work_days, allow_negative=allow_negative
            )
            status = LeaveStatus.pending

        # ── Request + history ───────────────────────────────────────
        leave_req = LeaveRequest(
            organization_id=actor.organization_id,
            user_id=target_user_id,
            leave_type_id=leave_type.id,
            start_date=data.start_date,
            end_date=data.end_date,
            start_half_day=data.start_half_day,
            end_half_day=data.end_half_day,
            work_days=work_days,
            reason=data.reason,
            status=status,
            submitted_at=now,
            updated_at=now,
        )
        db.add(leave_req)
        await db.flush()

        if on_behalf:
            db.add(
                LeaveApproval(
                    leave_request_id=leave_req.id,
                    approver_id=actor.user_id,
                    decision=ApprovalDecision.approved,
                    comment="Recorded by administrator",
                    decided_at=now,
                )
            )

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.user_id,
            organization_id=actor.organization_id,
            new_values={
                "leave_type": leave_type.code,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "work_days": str(work_days),
                "status": status.value,
            },
        )

        event_type = LeaveEventType.approved if on_behalf else LeaveEventType.requested
        enqueue_event(
            db, LeaveService._build_event(event_type, leave_req, leave_type, actor.user_id)
        )
        logger.info(
            "Leave request %s created for user %s (%s days, %s)",
            leave_req.id, target_user_id, work_days, status.value,
        )
        return LeaveRequestOut.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_request(
        db: AsyncSession,
        actor: OrganizationMember,
        request_id: uuid.UUID,
        comment: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Approve a pending request: the reservation becomes used leave."""
        now = datetime.now(timezone.utc)
        leave_req = await LeaveService._load_request(db, actor, request_id)

        if not policy.can_decide(actor.role, leave_req.user_id == actor.user_id):
            raise ForbiddenException("You are not authorized to approve this leave request.")
        if leave_req.status != LeaveStatus.pending:
            raise InvalidTransitionException("approve", leave_req.status.value)

        leave_type = await db.get(LeaveType, leave_req.leave_type_id)
        leave_req = await LeaveService._claim_transition(
            db, leave_req, "approve", LeaveStatus.pending, LeaveStatus.approved,
            updated_at=now,
        )
        await BalanceLedger.commit_pending(
            db, LeaveService._balance_key(leave_req), leave_req.work_days
        )

        db.add(
            LeaveApproval(
                leave_request_id=leave_req.id,
                approver_id=actor.user_id,
                decision=ApprovalDecision.approved,
                comment=comment,
                decided_at=now,
            )
        )
        await db.flush()

        enqueue_event(
            db,
            LeaveService._build_event(
                LeaveEventType.approved, leave_req, leave_type, actor.user_id, comment
            ),
        )
        logger.info("Leave request %s approved by %s", leave_req.id, actor.user_id)
        return LeaveRequestOut.model_validate(leave_req)

    @staticmethod
    async def reject_request(
        db: AsyncSession,
        actor: OrganizationMember,
        request_id: uuid.UUID,
        reason: str,
    ) -> LeaveRequestOut:
        """Reject a pending request and release its reservation."""
        now = datetime.now(timezone.utc)
        leave_req = await LeaveService._load_request(db, actor, request_id)

        if not policy.can_decide(actor.role, leave_req.user_id == actor.user_id):
            raise ForbiddenException("You are not authorized to reject this leave request.")
        if leave_req.status != LeaveStatus.pending:
            raise InvalidTransitionException("reject", leave_req.status.value)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException({"reason": ["A rejection reason is required."]})

        leave_type = await db.get(LeaveType, leave_req.leave_type_id)
        leave_req = await LeaveService._claim_transition(
            db, leave_req, "reject", LeaveStatus.pending, LeaveStatus.rejected,
            updated_at=now,
        )
        await BalanceLedger.release_pending(
            db, LeaveService._balance_key(leave_req), leave_req.work_days
        )

        db.add(
            LeaveApproval(
                leave_request_id=leave_req.id,
                approver_id=actor.user_id,
                decision=ApprovalDecision.rejected,
                comment=reason,
                decided_at=now,
            )
        )
        await db.flush()

        enqueue_event(
            db,
            LeaveService._build_event(
                LeaveEventType.rejected, leave_req, leave_type, actor.user_id, reason
            ),
        )
        logger.info("Leave request %s rejected by %s", leave_req.id, actor.user_id)
        return LeaveRequestOut.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Withdraw / Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def withdraw_request(
        db: AsyncSession,
        actor: OrganizationMember,
        request_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Owner takes back a pending request; the reservation is released."""
        now = datetime.now(timezone.utc)
        leave_req = await LeaveService._load_request(db, actor, request_id)

        if not policy.can_withdraw(leave_req.user_id == actor.user_id):
            raise ForbiddenException("Only the requester can withdraw a leave request.")
        if leave_req.status != LeaveStatus.pending:
            raise InvalidTransitionException("withdraw", leave_req.status.value)

        leave_req = await LeaveService._claim_transition(
            db, leave_req, "withdraw", LeaveStatus.pending, LeaveStatus.withdrawn,
            updated_at=now,
        )
        await BalanceLedger.release_pending(
            db, LeaveService._balance_key(leave_req), leave_req.work_days
        )

        await create_audit_entry(
            db,
            action="withdraw",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.user_id,
            organization_id=actor.organization_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.withdrawn.value},
        )
        logger.info("Leave request %s withdrawn", leave_req.id)
        return LeaveRequestOut.model_validate(leave_req)

    @staticmethod
    async def cancel_request(
        db: AsyncSession,
        actor: OrganizationMember,
        request_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Cancel approved leave (owner or admin) and give the days back."""
        now = datetime.now(timezone.utc)
        leave_req = await LeaveService._load_request(db, actor, request_id)

        if not policy.can_cancel(actor.role, leave_req.user_id == actor.user_id):
            raise ForbiddenException("You are not authorized to cancel this leave request.")
        if leave_req.status != LeaveStatus.approved:
            raise InvalidTransitionException("cancel", leave_req.status.value)

        leave_req = await LeaveService._claim_transition(
            db, leave_req, "cancel", LeaveStatus.approved, LeaveStatus.cancelled,
            cancelled_at=now,
            cancelled_by=actor.user_id,
            cancellation_reason=reason,
            updated_at=now,
        )
        await BalanceLedger.release_used(
            db, LeaveService._balance_key(leave_req), leave_req.work_days
        )

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.user_id,
            organization_id=actor.organization_id,
            old_values={"status": LeaveStatus.approved.value},
            new_values={"status": LeaveStatus.cancelled.value, "reason": reason},
        )
        logger.info("Leave request %s cancelled by %s", leave_req.id, actor.user_id)
        return LeaveRequestOut.model_validate(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        actor: OrganizationMember,
        request_id: uuid.UUID,
    ) -> LeaveRequestDetail:
        """A single request with its decision history."""
        leave_req = await LeaveService._load_request(
            db, actor, request_id, with_approvals=True
        )
        is_owner = leave_req.user_id == actor.user_id
        if not is_owner and not policy.can_view_others(actor.role):
            raise ForbiddenException("You can only view your own leave requests.")
        return LeaveRequestDetail.model_validate(leave_req)

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        actor: OrganizationMember,
        params: PaginationParams,
        *,
        scope: str = "mine",
        status: Optional[LeaveStatus] = None,
        year: Optional[int] = None,
    ) -> PaginatedResponse:
        """Own requests, or with ``scope="approvals"`` the organization's
        requests awaiting a decision from someone other than their owner."""
        query = select(LeaveRequest).where(
            LeaveRequest.organization_id == actor.organization_id
        )

        if scope == "approvals":
            if not policy.can_view_others(actor.role):
                raise ForbiddenException("Only approvers can view the approval queue.")
            query = query.where(
                LeaveRequest.user_id != actor.user_id,
                LeaveRequest.status == (status or LeaveStatus.pending),
            ).order_by(LeaveRequest.submitted_at)
        else:
            query = query.where(LeaveRequest.user_id == actor.user_id)
            if status is not None:
                query = query.where(LeaveRequest.status == status)
            query = query.order_by(LeaveRequest.start_date.desc())

        if year is not None:
            query = query.where(
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )

        return await paginate(
            db, query, params, model=LeaveRequest, transform=LeaveRequestOut.model_validate
        )

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        actor: OrganizationMember,
        *,
        year: int,
        user_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveBalanceOut]:
        """Ledger rows of one employee for *year*, ordered like the leave types."""
        target_user_id = user_id or actor.user_id
        if target_user_id != actor.user_id:
            if not policy.can_view_others(actor.role):
                raise ForbiddenException("You can only view your own leave balances.")
            await MembershipService.get_member(
                db, actor.organization_id, target_user_id, active_only=False
            )

        result = await db.execute(
            select(LeaveBalance)
            .join(LeaveType, LeaveBalance.leave_type_id == LeaveType.id)
            .where(
                LeaveBalance.organization_id == actor.organization_id,
                LeaveBalance.user_id == target_user_id,
                LeaveBalance.year == year,
            )
            .options(selectinload(LeaveBalance.leave_type))
            .order_by(LeaveType.sort_order, LeaveType.name)
        )
        return [LeaveBalanceOut.model_validate(b) for b in result.scalars().all()]

    @staticmethod
    async def get_leave_types(
        db: AsyncSession,
        actor: OrganizationMember,
        *,
        include_inactive: bool = False,
    ) -> list[LeaveTypeOut]:
        """System default and organization-specific leave types."""
        query = select(LeaveType).where(
            or_(
                LeaveType.organization_id.is_(None),
                LeaveType.organization_id == actor.organization_id,
            )
        )
        if not include_inactive:
            query = query.where(LeaveType.is_active.is_(True))
        query = query.order_by(LeaveType.sort_order, LeaveType.name)

        result = await db.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]
