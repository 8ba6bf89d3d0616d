"""Leave router — request lifecycle, balances, leave types.

All endpoints require authentication. Role and ownership rules are enforced
by the service so that every transition checks them the same way.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_member
from leavedesk.common.constants import LeaveStatus
from leavedesk.common.pagination import PaginatedResponse, PaginationParams
from leavedesk.common.rate_limit import limiter
from leavedesk.database import get_db
from leavedesk.leave.schemas import (
    LeaveApproveRequest,
    LeaveBalanceOut,
    LeaveCancelRequest,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestDetail,
    LeaveRequestOut,
    LeaveTypeOut,
    RequestScope,
)
from leavedesk.leave.service import LeaveService
from leavedesk.organizations.models import OrganizationMember

router = APIRouter(prefix="", tags=["leave"])


# ── GET /types ──────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def get_leave_types(
    include_inactive: bool = Query(False),
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Leave types available to the caller's organization."""
    return await LeaveService.get_leave_types(
        db, member, include_inactive=include_inactive,
    )


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def get_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    user_id: Optional[uuid.UUID] = Query(None),
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Leave balances for a year (defaults to the current year)."""
    target_year = year or date.today().year
    return await LeaveService.get_balances(
        db, member, year=target_year, user_id=user_id,
    )


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def list_requests(
    status: Optional[LeaveStatus] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    scope: RequestScope = Query("mine"),
    pagination: PaginationParams = Depends(),
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Own leave requests, or the approval queue with ``scope=approvals``."""
    return await LeaveService.list_requests(
        db, member, pagination, scope=scope, status=status, year=year,
    )


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
@limiter.limit("20/minute")
async def create_request(
    request: Request,
    body: LeaveRequestCreate,
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Request leave. Validates half-days, overlap and balance."""
    return await LeaveService.create_request(db, member, body)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestDetail)
async def get_request(
    request_id: uuid.UUID,
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, member, request_id)


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_request(
    request_id: uuid.UUID,
    body: LeaveApproveRequest,
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending leave request. Moves pending days to used."""
    return await LeaveService.approve_request(
        db, member, request_id, comment=body.comment,
    )


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_request(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending leave request. Releases the reserved days."""
    return await LeaveService.reject_request(db, member, request_id, body.reason)


# ── PUT /requests/{id}/withdraw ─────────────────────────────────────

@router.put("/requests/{request_id}/withdraw", response_model=LeaveRequestOut)
async def withdraw_request(
    request_id: uuid.UUID,
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw your own pending leave request."""
    return await LeaveService.withdraw_request(db, member, request_id)


# ── PUT /requests/{id}/cancel ───────────────────────────────────────

@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_request(
    request_id: uuid.UUID,
    body: Optional[LeaveCancelRequest] = None,
    member: OrganizationMember = Depends(get_current_member),
    db: AsyncSession = Depends(get_db),
):
    """Cancel approved leave. Returns the used days to the balance."""
    return await LeaveService.cancel_request(
        db, member, request_id, reason=body.reason if body else None,
    )
