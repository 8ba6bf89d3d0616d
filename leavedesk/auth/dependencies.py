"""Auth dependencies — JWT validation, organization role enforcement.

Tokens are issued elsewhere; this service only verifies them and resolves the
caller's active organization membership.
"""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import MemberRole
from leavedesk.common.exceptions import ForbiddenException
from leavedesk.config import settings
from leavedesk.database import get_db
from leavedesk.organizations.models import OrganizationMember
from leavedesk.organizations.service import MembershipService


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_member(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> OrganizationMember:
    """Validate JWT and return the caller's active organization membership."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    member = await MembershipService.get_active_membership(db, user_id)
    if member is None:
        raise HTTPException(status_code=401, detail="No active organization membership.")

    request.state.member_role = member.role
    return member


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: MemberRole) -> Callable:
    """Return a FastAPI dependency that enforces the caller's organization role."""

    async def _check(
        member: OrganizationMember = Depends(get_current_member),
    ) -> OrganizationMember:
        if member.role not in allowed_roles:
            raise ForbiddenException(
                detail=f"Role '{member.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return member

    return _check
