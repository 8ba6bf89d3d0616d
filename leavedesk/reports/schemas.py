"""Report row schemas."""

import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from leavedesk.common.constants import LeaveStatus


class EmployeeBalanceRow(BaseModel):
    """One ledger row joined with the employee and leave type."""

    user_id: uuid.UUID
    name: Optional[str] = None
    email: str
    leave_type_id: uuid.UUID
    leave_type_code: str
    leave_type_name: str
    year: int
    entitled: Decimal
    carried_over: Decimal
    adjustment: Decimal
    used: Decimal
    pending: Decimal
    remaining: Decimal


class LeaveSummaryRow(BaseModel):
    leave_type_id: uuid.UUID
    leave_type_code: str
    leave_type_name: str
    status: LeaveStatus
    request_count: int
    total_days: Decimal
