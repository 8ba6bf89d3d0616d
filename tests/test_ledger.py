"""Balance ledger — guarded compare-and-set operations and lazy initialization."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.exceptions import (
    InsufficientBalanceException,
    InvariantViolation,
    NotFoundException,
)
from leavedesk.leave.ledger import BalanceKey, BalanceLedger
from tests.conftest import seed_balance, seed_leave_type, seed_member, seed_organization


def _key(member, leave_type, year: int = 2024) -> BalanceKey:
    return BalanceKey(member.organization_id, member.user_id, leave_type.id, year)


# ═════════════════════════════════════════════════════════════════════
# 1. Reservations
# ═════════════════════════════════════════════════════════════════════


class TestReservePending:

    async def test_reserve_moves_remaining_into_pending(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation)

        bal = await BalanceLedger.reserve_pending(db, _key(employee, vacation), Decimal("5"))

        assert bal.pending == Decimal("5")
        assert bal.used == Decimal("0")
        assert bal.remaining == Decimal("25")

    async def test_reserve_exactly_remaining_is_allowed(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation, entitled=Decimal("2.5"))

        bal = await BalanceLedger.reserve_pending(db, _key(employee, vacation), Decimal("2.5"))

        assert bal.remaining == Decimal("0")

    async def test_reserve_more_than_remaining_fails_without_mutation(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(
            db, employee, vacation,
            entitled=Decimal("10"), used=Decimal("6"), pending=Decimal("2"),
        )

        with pytest.raises(InsufficientBalanceException) as exc_info:
            await BalanceLedger.reserve_pending(db, _key(employee, vacation), Decimal("3"))

        assert exc_info.value.available == Decimal("2")
        assert exc_info.value.requested == Decimal("3")
        bal = await BalanceLedger.get_balance(db, _key(employee, vacation))
        assert bal.pending == Decimal("2")
        assert bal.used == Decimal("6")

    async def test_carryover_and_adjustment_count_towards_remaining(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(
            db, employee, vacation,
            entitled=Decimal("2"), carried_over=Decimal("2"), adjustment=Decimal("-1"),
        )

        bal = await BalanceLedger.reserve_pending(db, _key(employee, vacation), Decimal("3"))
        assert bal.remaining == Decimal("0")

    async def test_allow_negative_permits_overdraw(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation, entitled=Decimal("1"))

        bal = await BalanceLedger.reserve_pending(
            db, _key(employee, vacation), Decimal("4"), allow_negative=True,
        )

        assert bal.pending == Decimal("4")
        assert bal.remaining == Decimal("-3")

    async def test_missing_row_is_not_found(self, db: AsyncSession, employee, vacation):
        with pytest.raises(NotFoundException):
            await BalanceLedger.reserve_pending(db, _key(employee, vacation), Decimal("1"))

    async def test_non_positive_amount_is_rejected(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation)

        with pytest.raises(InvariantViolation):
            await BalanceLedger.reserve_pending(db, _key(employee, vacation), Decimal("0"))


# ═════════════════════════════════════════════════════════════════════
# 2. Releases and commits
# ═════════════════════════════════════════════════════════════════════


class TestReleaseAndCommit:

    async def test_release_pending(self, db: AsyncSession, employee, vacation):
        await seed_balance(db, employee, vacation, pending=Decimal("5"))

        bal = await BalanceLedger.release_pending(db, _key(employee, vacation), Decimal("5"))

        assert bal.pending == Decimal("0")
        assert bal.remaining == Decimal("30")

    async def test_release_more_than_pending_is_invariant_violation(
        self, db: AsyncSession, employee, vacation, caplog,
    ):
        await seed_balance(db, employee, vacation, pending=Decimal("1"))

        with caplog.at_level(logging.ERROR, logger="leavedesk.leave.ledger"):
            with pytest.raises(InvariantViolation):
                await BalanceLedger.release_pending(
                    db, _key(employee, vacation), Decimal("2"),
                )

        assert "Ledger invariant violated" in caplog.text
        assert str(employee.user_id) in caplog.text
        bal = await BalanceLedger.get_balance(db, _key(employee, vacation))
        assert bal.pending == Decimal("1")

    async def test_commit_pending_moves_to_used(self, db: AsyncSession, employee, vacation):
        await seed_balance(db, employee, vacation, pending=Decimal("5"))

        bal = await BalanceLedger.commit_pending(db, _key(employee, vacation), Decimal("5"))

        assert bal.pending == Decimal("0")
        assert bal.used == Decimal("5")
        assert bal.remaining == Decimal("25")

    async def test_commit_without_reservation_fails(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation)

        with pytest.raises(InvariantViolation):
            await BalanceLedger.commit_pending(db, _key(employee, vacation), Decimal("1"))

        bal = await BalanceLedger.get_balance(db, _key(employee, vacation))
        assert bal.used == Decimal("0")

    async def test_release_used(self, db: AsyncSession, employee, vacation):
        await seed_balance(db, employee, vacation, used=Decimal("5"))

        bal = await BalanceLedger.release_used(db, _key(employee, vacation), Decimal("5"))

        assert bal.used == Decimal("0")
        assert bal.remaining == Decimal("30")

    async def test_release_used_below_zero_fails(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation, used=Decimal("0.5"))

        with pytest.raises(InvariantViolation):
            await BalanceLedger.release_used(db, _key(employee, vacation), Decimal("1"))

    async def test_record_used_checks_availability(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation, entitled=Decimal("3"))

        bal = await BalanceLedger.record_used(db, _key(employee, vacation), Decimal("3"))
        assert bal.used == Decimal("3")

        with pytest.raises(InsufficientBalanceException):
            await BalanceLedger.record_used(db, _key(employee, vacation), Decimal("0.5"))

    async def test_operations_only_touch_their_year(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation, year=2024)
        await seed_balance(db, employee, vacation, year=2025)

        await BalanceLedger.reserve_pending(db, _key(employee, vacation, 2025), Decimal("2"))

        bal_2024 = await BalanceLedger.get_balance(db, _key(employee, vacation, 2024))
        assert bal_2024.pending == Decimal("0")


# ═════════════════════════════════════════════════════════════════════
# 3. Initialization
# ═════════════════════════════════════════════════════════════════════


class TestEnsureBalance:

    async def test_creates_row_from_leave_type_allowance(
        self, db: AsyncSession, employee, vacation,
    ):
        bal = await BalanceLedger.ensure_balance(db, _key(employee, vacation), vacation)

        assert bal.entitled == Decimal("30")
        assert bal.carried_over == Decimal("0")
        assert bal.used == Decimal("0")
        assert bal.pending == Decimal("0")

    async def test_second_call_returns_existing_row(
        self, db: AsyncSession, employee, vacation,
    ):
        first = await BalanceLedger.ensure_balance(db, _key(employee, vacation), vacation)
        await BalanceLedger.reserve_pending(db, _key(employee, vacation), Decimal("2"))

        second = await BalanceLedger.ensure_balance(db, _key(employee, vacation), vacation)

        assert second.id == first.id
        assert second.pending == Decimal("2")

    async def test_no_allowance_type_starts_at_zero(
        self, db: AsyncSession, employee,
    ):
        sick = await seed_leave_type(
            db, code="SICK", name="Sick leave",
            has_allowance=False, default_days_per_year=None,
        )

        bal = await BalanceLedger.ensure_balance(db, _key(employee, sick), sick)

        assert bal.entitled == Decimal("0")

    async def test_pro_rata_for_join_year(self, db: AsyncSession, employee, vacation):
        bal = await BalanceLedger.ensure_balance(
            db, _key(employee, vacation), vacation, joined_on=date(2024, 7, 1),
        )
        assert bal.entitled == Decimal("15")

    async def test_carryover_from_previous_year_is_capped(
        self, db: AsyncSession, employee,
    ):
        lt = await seed_leave_type(
            db, code="VAC_CO", allow_carryover=True, max_carryover_days=Decimal("5"),
        )
        await seed_balance(db, employee, lt, year=2023, entitled=Decimal("30"), used=Decimal("22"))

        bal = await BalanceLedger.ensure_balance(db, _key(employee, lt, 2024), lt)

        assert bal.carried_over == Decimal("5")
        assert bal.remaining == Decimal("35")

    async def test_no_carryover_when_type_disallows_it(
        self, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation, year=2023, entitled=Decimal("30"))

        bal = await BalanceLedger.ensure_balance(db, _key(employee, vacation, 2024), vacation)

        assert bal.carried_over == Decimal("0")


class TestInitializeMemberBalances:

    async def test_opens_allowance_types_visible_to_organization(
        self, db: AsyncSession, organization, vacation,
    ):
        member = await seed_member(db, organization, joined_on=date(2024, 7, 1))
        await seed_leave_type(
            db, code="SICK", has_allowance=False, default_days_per_year=None,
        )
        own = await seed_leave_type(
            db, organization_id=organization.id, code="TRAINING",
            default_days_per_year=Decimal("4"),
        )
        other_org = await seed_organization(db, name="Other AG")
        await seed_leave_type(db, organization_id=other_org.id, code="FOREIGN")
        await seed_leave_type(db, code="OLD", is_active=False)

        balances = await BalanceLedger.initialize_member_balances(
            db,
            organization_id=organization.id,
            user_id=member.user_id,
            year=2024,
            joined_on=member.joined_on,
        )

        by_type = {b.leave_type_id: b for b in balances}
        assert set(by_type) == {vacation.id, own.id}
        assert by_type[vacation.id].entitled == Decimal("15")
        assert by_type[own.id].entitled == Decimal("2")
