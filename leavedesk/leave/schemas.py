"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out / *Detail      → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leavedesk.common.constants import ApprovalDecision, HalfDay, LeaveStatus
from leavedesk.config import settings


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeBrief(BaseModel):
    """Minimal leave type info embedded in balance responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    is_paid: bool = True


class LeaveTypeOut(BaseModel):
    """Full leave type representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    code: str
    name: str
    description: Optional[str] = None
    is_paid: bool = True
    requires_approval: bool = True
    requires_document: bool = False
    document_grace_days: Optional[int] = None
    has_allowance: bool = True
    default_days_per_year: Optional[Decimal] = None
    allow_negative: bool = False
    allow_half_days: bool = True
    allow_carryover: bool = False
    max_carryover_days: Optional[Decimal] = None
    is_active: bool = True
    sort_order: int = 0


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Ledger row for one leave type and year, with derived remaining."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    entitled: Decimal
    carried_over: Decimal
    adjustment: Decimal
    used: Decimal
    pending: Decimal
    remaining: Decimal
    notes: Optional[str] = None

    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Create
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for requesting leave.

    ``user_id`` is only honoured for admins recording leave for another
    member; such leave is stored as already approved.
    """

    user_id: Optional[uuid.UUID] = Field(
        None, description="Employee to record leave for (admins only)"
    )
    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    start_half_day: Optional[HalfDay] = None
    end_half_day: Optional[HalfDay] = None
    reason: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date.")
        if (self.end_date - self.start_date).days > settings.MAX_LEAVE_SPAN_DAYS:
            raise ValueError(
                f"Leave request cannot span more than {settings.MAX_LEAVE_SPAN_DAYS} days."
            )
        return self


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Response
# ═════════════════════════════════════════════════════════════════════


class LeaveApprovalOut(BaseModel):
    """One entry of a request's decision history."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    approver_id: uuid.UUID
    decision: ApprovalDecision
    comment: Optional[str] = None
    decided_at: datetime


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    start_half_day: Optional[HalfDay] = None
    end_half_day: Optional[HalfDay] = None
    work_days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    submitted_at: datetime
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[uuid.UUID] = None
    cancellation_reason: Optional[str] = None


class LeaveRequestDetail(LeaveRequestOut):
    """Leave request with its approval history."""

    approvals: list[LeaveApprovalOut] = []


# ═════════════════════════════════════════════════════════════════════
# Leave Approve / Reject / Cancel
# ═════════════════════════════════════════════════════════════════════


class LeaveApproveRequest(BaseModel):
    """Payload for approving a leave request."""

    comment: Optional[str] = Field(None, max_length=500)


class LeaveRejectRequest(BaseModel):
    """Payload for rejecting a leave request."""

    reason: str = Field(..., min_length=1, max_length=500)


class LeaveCancelRequest(BaseModel):
    """Payload for cancelling an approved leave request."""

    reason: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Leave Request Filters
# ═════════════════════════════════════════════════════════════════════


RequestScope = Literal["mine", "approvals"]
