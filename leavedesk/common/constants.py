"""Enums and constants for LeaveDesk — matching the database ENUM types."""

from __future__ import annotations

import enum


# ── Organizations / Roles ───────────────────────────────────────────

class MemberRole(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    member = "member"


class MembershipStatus(str, enum.Enum):
    active = "active"
    invited = "invited"
    deactivated = "deactivated"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    withdrawn = "withdrawn"
    cancelled = "cancelled"


ACTIVE_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.pending,
    LeaveStatus.approved,
)

TERMINAL_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.rejected,
    LeaveStatus.withdrawn,
    LeaveStatus.cancelled,
)


class HalfDay(str, enum.Enum):
    morning = "morning"
    afternoon = "afternoon"


class ApprovalDecision(str, enum.Enum):
    approved = "approved"
    rejected = "rejected"


# ── Holidays ────────────────────────────────────────────────────────

class HolidayType(str, enum.Enum):
    public = "public"
    company = "company"
    optional = "optional"


# ── Outbound events ─────────────────────────────────────────────────

class LeaveEventType(str, enum.Enum):
    requested = "leave.requested"
    approved = "leave.approved"
    rejected = "leave.rejected"


# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
