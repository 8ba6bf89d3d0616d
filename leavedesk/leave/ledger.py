"""Balance ledger — the only code path that mutates ``leave_balances``.

Every mutation is one conditional UPDATE (compare-and-set) keyed by the full
``(organization, user, leave type, year)`` key, so two concurrent transitions
on the same row cannot lose each other's update. When the UPDATE matches no
row, the row is re-read to tell a missing balance from a failed guard.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Callable, NamedTuple, Optional

from sqlalchemy import ColumnElement, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.exceptions import (
    AppException,
    InsufficientBalanceException,
    InvariantViolation,
    NotFoundException,
)
from leavedesk.leave.models import LeaveBalance, LeaveType
from leavedesk.leave.workdays import ZERO, carryover_amount, pro_rata_entitlement

logger = logging.getLogger(__name__)


class BalanceKey(NamedTuple):
    organization_id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int

    def __str__(self) -> str:
        return (
            f"org={self.organization_id} user={self.user_id} "
            f"type={self.leave_type_id} year={self.year}"
        )


def _key_clause(key: BalanceKey) -> list[ColumnElement[bool]]:
    return [
        LeaveBalance.organization_id == key.organization_id,
        LeaveBalance.user_id == key.user_id,
        LeaveBalance.leave_type_id == key.leave_type_id,
        LeaveBalance.year == key.year,
    ]


def _invariant_error(operation: str, field: str) -> Callable[[BalanceKey, LeaveBalance, Decimal], AppException]:
    def _build(key: BalanceKey, row: LeaveBalance, amount: Decimal) -> AppException:
        current = getattr(row, field)
        logger.error(
            "Ledger invariant violated: %s of %s would drive %s below zero "
            "(current=%s) for %s",
            operation, amount, field, current, key,
        )
        return InvariantViolation(
            f"Cannot {operation} {amount} day(s): {field} is only {current}."
        )

    return _build


def _insufficient(key: BalanceKey, row: LeaveBalance, amount: Decimal) -> AppException:
    return InsufficientBalanceException(available=row.remaining, requested=amount)


class BalanceLedger:
    """Guarded arithmetic on one balance row per operation."""

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(db: AsyncSession, key: BalanceKey) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance)
            .where(*_key_clause(key))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    # ── Core compare-and-set ────────────────────────────────────────

    @staticmethod
    async def _apply(
        db: AsyncSession,
        key: BalanceKey,
        amount: Decimal,
        *,
        values: dict[str, Any],
        guard: Optional[ColumnElement[bool]],
        on_guard_failure: Callable[[BalanceKey, LeaveBalance, Decimal], AppException],
    ) -> LeaveBalance:
        conditions = _key_clause(key)
        if guard is not None:
            conditions.append(guard)

        result = await db.execute(
            update(LeaveBalance)
            .where(*conditions)
            .values(**values, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )

        balance = await BalanceLedger.get_balance(db, key)
        if result.rowcount == 0:
            if balance is None:
                raise NotFoundException("LeaveBalance", str(key))
            raise on_guard_failure(key, balance, amount)
        if balance is None:
            raise InvariantViolation(f"Balance row vanished after update ({key}).")
        return balance

    @staticmethod
    def _positive(amount: Decimal, key: BalanceKey) -> Decimal:
        amount = Decimal(amount)
        if amount <= 0:
            logger.error("Ledger called with non-positive amount %s for %s", amount, key)
            raise InvariantViolation(f"Ledger amounts must be positive, got {amount}.")
        return amount

    # ── Operations ──────────────────────────────────────────────────

    @staticmethod
    async def reserve_pending(
        db: AsyncSession,
        key: BalanceKey,
        amount: Decimal,
        *,
        allow_negative: bool = False,
    ) -> LeaveBalance:
        """``pending += amount``; refuses to overdraw unless *allow_negative*."""
        amount = BalanceLedger._positive(amount, key)
        return await BalanceLedger._apply(
            db, key, amount,
            values={"pending": LeaveBalance.pending + amount},
            guard=None if allow_negative else LeaveBalance.remaining >= amount,
            on_guard_failure=_insufficient,
        )

    @staticmethod
    async def release_pending(
        db: AsyncSession, key: BalanceKey, amount: Decimal
    ) -> LeaveBalance:
        """``pending -= amount`` for a rejected or withdrawn request."""
        amount = BalanceLedger._positive(amount, key)
        return await BalanceLedger._apply(
            db, key, amount,
            values={"pending": LeaveBalance.pending - amount},
            guard=LeaveBalance.pending >= amount,
            on_guard_failure=_invariant_error("release", "pending"),
        )

    @staticmethod
    async def commit_pending(
        db: AsyncSession, key: BalanceKey, amount: Decimal
    ) -> LeaveBalance:
        """Move *amount* from pending to used in one statement."""
        amount = BalanceLedger._positive(amount, key)
        return await BalanceLedger._apply(
            db, key, amount,
            values={
                "pending": LeaveBalance.pending - amount,
                "used": LeaveBalance.used + amount,
            },
            guard=LeaveBalance.pending >= amount,
            on_guard_failure=_invariant_error("commit", "pending"),
        )

    @staticmethod
    async def release_used(
        db: AsyncSession, key: BalanceKey, amount: Decimal
    ) -> LeaveBalance:
        """``used -= amount`` for a cancelled approved request."""
        amount = BalanceLedger._positive(amount, key)
        return await BalanceLedger._apply(
            db, key, amount,
            values={"used": LeaveBalance.used - amount},
            guard=LeaveBalance.used >= amount,
            on_guard_failure=_invariant_error("release", "used"),
        )

    @staticmethod
    async def record_used(
        db: AsyncSession,
        key: BalanceKey,
        amount: Decimal,
        *,
        allow_negative: bool = False,
    ) -> LeaveBalance:
        """``used += amount`` directly, for leave an admin records as approved."""
        amount = BalanceLedger._positive(amount, key)
        return await BalanceLedger._apply(
            db, key, amount,
            values={"used": LeaveBalance.used + amount},
            guard=None if allow_negative else LeaveBalance.remaining >= amount,
            on_guard_failure=_insufficient,
        )

    # ── Initialization ──────────────────────────────────────────────

    @staticmethod
    async def ensure_balance(
        db: AsyncSession,
        key: BalanceKey,
        leave_type: LeaveType,
        *,
        joined_on: Optional[date] = None,
    ) -> LeaveBalance:
        """Return the balance row for *key*, creating it if it does not exist.

        A new row gets the leave type's yearly allowance (pro-rated when
        *joined_on* falls inside the year) and, for carry-over types, the
        unused remainder of the previous year. Concurrent creators race on
        ``INSERT … ON CONFLICT DO NOTHING``; the loser reads the winner's row.
        """
        existing = await BalanceLedger.get_balance(db, key)
        if existing is not None:
            return existing

        entitled = ZERO
        if leave_type.has_allowance and leave_type.default_days_per_year is not None:
            entitled = pro_rata_entitlement(
                joined_on, leave_type.default_days_per_year, key.year
            )

        carried_over = ZERO
        if leave_type.allow_carryover:
            previous = await BalanceLedger.get_balance(
                db, key._replace(year=key.year - 1)
            )
            if previous is not None:
                carried_over = carryover_amount(
                    previous.remaining, leave_type.max_carryover_days
                )

        dialect = db.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = (
            insert(LeaveBalance)
            .values(
                id=uuid.uuid4(),
                organization_id=key.organization_id,
                user_id=key.user_id,
                leave_type_id=key.leave_type_id,
                year=key.year,
                entitled=entitled,
                carried_over=carried_over,
                adjustment=ZERO,
                used=ZERO,
                pending=ZERO,
            )
            .on_conflict_do_nothing(
                index_elements=["organization_id", "user_id", "leave_type_id", "year"]
            )
        )
        await db.execute(stmt)

        balance = await BalanceLedger.get_balance(db, key)
        if balance is None:
            raise InvariantViolation(f"Balance row could not be created ({key}).")
        logger.info(
            "Opened leave balance %s (entitled=%s, carried_over=%s)",
            key, balance.entitled, balance.carried_over,
        )
        return balance

    @staticmethod
    async def initialize_member_balances(
        db: AsyncSession,
        *,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        year: int,
        joined_on: Optional[date] = None,
    ) -> list[LeaveBalance]:
        """Open a balance for every active allowance-bearing leave type."""
        result = await db.execute(
            select(LeaveType)
            .where(
                LeaveType.is_active.is_(True),
                LeaveType.has_allowance.is_(True),
                or_(
                    LeaveType.organization_id.is_(None),
                    LeaveType.organization_id == organization_id,
                ),
            )
            .order_by(LeaveType.sort_order, LeaveType.name)
        )
        balances = []
        for leave_type in result.scalars().all():
            key = BalanceKey(organization_id, user_id, leave_type.id, year)
            balances.append(
                await BalanceLedger.ensure_balance(
                    db, key, leave_type, joined_on=joined_on
                )
            )
        return balances
