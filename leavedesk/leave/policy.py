"""Who may perform which leave transition.

One capability function per action; callers pass the actor's role and whether
the actor owns the request.
"""

from leavedesk.common.constants import MemberRole

APPROVER_ROLES = frozenset({MemberRole.admin, MemberRole.manager})


def can_decide(role: MemberRole, is_owner: bool) -> bool:
    """Approve or reject: admins and managers, never on their own request."""
    return role in APPROVER_ROLES and not is_owner


def can_withdraw(is_owner: bool) -> bool:
    return is_owner


def can_cancel(role: MemberRole, is_owner: bool) -> bool:
    return is_owner or role == MemberRole.admin


def can_record_for_others(role: MemberRole) -> bool:
    """Create leave on behalf of another member (recorded as approved)."""
    return role == MemberRole.admin


def can_view_others(role: MemberRole) -> bool:
    return role in APPROVER_ROLES
