"""Membership lookups and the member-joined hook that seeds leave balances."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import MemberRole, MembershipStatus
from leavedesk.common.exceptions import NotFoundException, ValidationException
from leavedesk.leave.ledger import BalanceLedger
from leavedesk.organizations.models import Organization, OrganizationMember

logger = logging.getLogger(__name__)


class MembershipService:
    """Resolve actors to their organization and role."""

    @staticmethod
    async def get_active_membership(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> Optional[OrganizationMember]:
        """Return the user's active membership with its organization loaded."""
        result = await db.execute(
            select(OrganizationMember)
            .where(
                OrganizationMember.user_id == user_id,
                OrganizationMember.status == MembershipStatus.active,
            )
            .options(
                selectinload(OrganizationMember.organization),
                selectinload(OrganizationMember.user),
            )
            .order_by(OrganizationMember.created_at)
            .limit(1)
        )
        return result.scalars().first()

    @staticmethod
    async def get_member(
        db: AsyncSession,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> OrganizationMember:
        """Fetch a membership in *organization_id* or raise NotFoundException."""
        query = select(OrganizationMember).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
        if active_only:
            query = query.where(OrganizationMember.status == MembershipStatus.active)
        result = await db.execute(query)
        member = result.scalars().first()
        if member is None:
            raise NotFoundException("Member", user_id)
        return member

    @staticmethod
    async def add_member(
        db: AsyncSession,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        *,
        role: MemberRole = MemberRole.member,
        joined_on: Optional[date] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> OrganizationMember:
        """Activate *user_id* in an organization and open their leave balances.

        Balances for the joining year are created with a pro-rata entitlement.
        """
        organization = await db.get(Organization, organization_id)
        if organization is None:
            raise NotFoundException("Organization", organization_id)

        existing = await db.execute(
            select(OrganizationMember).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.user_id == user_id,
            )
        )
        if existing.scalars().first() is not None:
            raise ValidationException(
                {"user_id": ["User is already a member of this organization."]}
            )

        joined_on = joined_on or date.today()
        member = OrganizationMember(
            organization_id=organization_id,
            user_id=user_id,
            role=role,
            status=MembershipStatus.active,
            joined_on=joined_on,
        )
        db.add(member)
        await db.flush()

        balances = await BalanceLedger.initialize_member_balances(
            db,
            organization_id=organization_id,
            user_id=user_id,
            year=joined_on.year,
            joined_on=joined_on,
        )

        await create_audit_entry(
            db,
            action="create",
            entity_type="organization_member",
            entity_id=member.id,
            actor_id=actor_id,
            organization_id=organization_id,
            new_values={"user_id": str(user_id), "role": role.value},
        )
        logger.info(
            "Member %s joined organization %s as %s (%d balances opened)",
            user_id, organization_id, role.value, len(balances),
        )
        return member
