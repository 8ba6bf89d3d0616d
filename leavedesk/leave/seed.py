"""System default leave types, shared by every organization."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.leave.models import LeaveType

logger = logging.getLogger(__name__)

DEFAULT_LEAVE_TYPES: list[dict[str, Any]] = [
    {
        "code": "VACATION",
        "name": "Vacation",
        "description": "Annual paid vacation",
        "has_allowance": True,
        "default_days_per_year": Decimal("30"),
        "allow_carryover": True,
        "max_carryover_days": Decimal("5"),
        "sort_order": 10,
    },
    {
        "code": "SICK",
        "name": "Sick leave",
        "description": "Illness; a medical certificate is due after the grace period",
        "has_allowance": False,
        "requires_document": True,
        "document_grace_days": 3,
        "sort_order": 20,
    },
    {
        "code": "SPECIAL",
        "name": "Special leave",
        "description": "Paid leave for personal events (wedding, moving, bereavement)",
        "has_allowance": True,
        "default_days_per_year": Decimal("3"),
        "sort_order": 30,
    },
    {
        "code": "UNPAID",
        "name": "Unpaid leave",
        "is_paid": False,
        "has_allowance": False,
        "sort_order": 40,
    },
]


async def seed_default_leave_types(db: AsyncSession) -> list[LeaveType]:
    """Insert the system leave types that do not exist yet."""
    result = await db.execute(
        select(LeaveType.code).where(LeaveType.organization_id.is_(None))
    )
    existing = set(result.scalars().all())

    created = []
    for defaults in DEFAULT_LEAVE_TYPES:
        if defaults["code"] in existing:
            continue
        leave_type = LeaveType(organization_id=None, **defaults)
        db.add(leave_type)
        created.append(leave_type)

    await db.flush()
    logger.info("Seeded %d default leave type(s)", len(created))
    return created
