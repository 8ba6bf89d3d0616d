"""Common module — shared utilities for LeaveDesk."""

from leavedesk.common.audit import AuditTrail, create_audit_entry
from leavedesk.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    TERMINAL_LEAVE_STATUSES,
    ApprovalDecision,
    HalfDay,
    HolidayType,
    LeaveEventType,
    LeaveStatus,
    MemberRole,
    MembershipStatus,
)
from leavedesk.common.exceptions import (
    AppException,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidTransitionException,
    InvariantViolation,
    NotFoundException,
    OverlapException,
    ValidationException,
    register_exception_handlers,
)
from leavedesk.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "ApprovalDecision",
    "HalfDay",
    "HolidayType",
    "LeaveEventType",
    "LeaveStatus",
    "MemberRole",
    "MembershipStatus",
    "ACTIVE_LEAVE_STATUSES",
    "TERMINAL_LEAVE_STATUSES",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidTransitionException",
    "InvariantViolation",
    "NotFoundException",
    "OverlapException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
