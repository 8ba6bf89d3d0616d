"""Overlap guard for new leave requests."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import ACTIVE_LEAVE_STATUSES
from leavedesk.leave.models import LeaveRequest


async def has_overlapping_request(
    db: AsyncSession,
    user_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> bool:
    """True if a pending or approved request of *user_id* shares any date.

    Ranges are inclusive; half-day flags are ignored.
    """
    result = await db.execute(
        select(
            exists().where(
                LeaveRequest.user_id == user_id,
                LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
        )
    )
    return bool(result.scalar())
