"""HTTP API tests — auth, status codes, problem+json bodies and the request
lifecycle through the leave endpoints.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import MemberRole, MembershipStatus
from tests.conftest import (
    auth_headers,
    create_access_token,
    seed_balance,
    seed_leave_type,
    seed_member,
    seed_organization,
)

REQUESTS = "/api/v1/leave/requests"


def _body(leave_type, start: str = "2024-06-10", end: str = "2024-06-14", **extra) -> dict:
    return {
        "leave_type_id": str(leave_type.id),
        "start_date": start,
        "end_date": end,
        **extra,
    }


# ── Health / auth ───────────────────────────────────────────────────


class TestAuth:

    async def test_health(self, client: AsyncClient):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_missing_token(self, client: AsyncClient):
        resp = await client.get("/api/v1/leave/types")
        assert resp.status_code == 401

    async def test_expired_token(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        token = create_access_token(employee.user_id, expired=True)

        resp = await client.get(
            "/api/v1/leave/types", headers={"Authorization": f"Bearer {token}"},
        )

        assert resp.status_code == 401

    async def test_refresh_token_rejected(self, client: AsyncClient, db: AsyncSession, employee):
        await db.commit()
        token = create_access_token(employee.user_id, token_type="refresh")

        resp = await client.get(
            "/api/v1/leave/types", headers={"Authorization": f"Bearer {token}"},
        )

        assert resp.status_code == 401

    async def test_garbage_token(self, client: AsyncClient):
        resp = await client.get(
            "/api/v1/leave/types", headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    async def test_unknown_user(self, client: AsyncClient):
        resp = await client.get(
            "/api/v1/leave/types",
            headers={"Authorization": f"Bearer {create_access_token(uuid.uuid4())}"},
        )
        assert resp.status_code == 401

    async def test_deactivated_member(self, client: AsyncClient, db: AsyncSession, organization):
        member = await seed_member(db, organization, status=MembershipStatus.deactivated)
        await db.commit()

        resp = await client.get("/api/v1/leave/types", headers=auth_headers(member))

        assert resp.status_code == 401


# ── Create ──────────────────────────────────────────────────────────


class TestCreateAPI:

    async def test_create_returns_201(self, client: AsyncClient, db: AsyncSession, employee, vacation):
        await db.commit()

        resp = await client.post(REQUESTS, json=_body(vacation), headers=auth_headers(employee))

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "pending"
        assert Decimal(str(body["work_days"])) == Decimal("5")
        assert body["user_id"] == str(employee.user_id)

        balances = await client.get(
            "/api/v1/leave/balances", params={"year": 2024}, headers=auth_headers(employee),
        )
        assert balances.status_code == 200
        row = balances.json()[0]
        assert Decimal(str(row["pending"])) == Decimal("5")
        assert Decimal(str(row["remaining"])) == Decimal("25")
        assert row["leave_type"]["code"] == "VACATION"

    async def test_inverted_dates_422(self, client: AsyncClient, db: AsyncSession, employee, vacation):
        await db.commit()

        resp = await client.post(
            REQUESTS,
            json=_body(vacation, start="2024-06-14", end="2024-06-10"),
            headers=auth_headers(employee),
        )

        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith("application/problem+json")
        assert resp.json()["code"] == "validation-error"

    async def test_weekend_only_422(self, client: AsyncClient, db: AsyncSession, employee, vacation):
        await db.commit()

        resp = await client.post(
            REQUESTS,
            json=_body(vacation, start="2024-06-15", end="2024-06-16"),
            headers=auth_headers(employee),
        )

        assert resp.status_code == 422
        assert "dates" in resp.json()["errors"]

    async def test_overlap_409(self, client: AsyncClient, db: AsyncSession, employee, vacation):
        await db.commit()
        headers = auth_headers(employee)

        first = await client.post(REQUESTS, json=_body(vacation), headers=headers)
        second = await client.post(
            REQUESTS, json=_body(vacation, start="2024-06-12", end="2024-06-18"), headers=headers,
        )

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["code"] == "overlap"

    async def test_insufficient_balance_409_leaves_no_trace(
        self, client: AsyncClient, db: AsyncSession, employee, vacation,
    ):
        await seed_balance(db, employee, vacation, entitled=Decimal("2"))
        await db.commit()
        headers = auth_headers(employee)

        resp = await client.post(REQUESTS, json=_body(vacation), headers=headers)

        assert resp.status_code == 409
        problem = resp.json()
        assert problem["code"] == "insufficient-balance"
        assert problem["type"].endswith("/insufficient-balance")
        assert problem["instance"] == REQUESTS

        listing = await client.get(REQUESTS, headers=headers)
        assert listing.json()["meta"]["total"] == 0
        balances = await client.get(
            "/api/v1/leave/balances", params={"year": 2024}, headers=headers,
        )
        assert Decimal(str(balances.json()[0]["pending"])) == Decimal("0")

    async def test_foreign_leave_type_404(self, client: AsyncClient, db: AsyncSession, employee):
        other = await seed_organization(db, name="Other AG")
        theirs = await seed_leave_type(db, organization_id=other.id, code="THEIRS")
        await db.commit()

        resp = await client.post(REQUESTS, json=_body(theirs), headers=auth_headers(employee))

        assert resp.status_code == 404
        assert resp.json()["code"] == "not-found"

    async def test_record_for_member_forbidden_for_manager(
        self, client: AsyncClient, db: AsyncSession, employee, manager, vacation,
    ):
        await db.commit()

        resp = await client.post(
            REQUESTS,
            json=_body(vacation, user_id=str(employee.user_id)),
            headers=auth_headers(manager),
        )

        assert resp.status_code == 403


# ── Transitions ─────────────────────────────────────────────────────


class TestLifecycleAPI:

    async def test_approve_then_cancel(
        self, client: AsyncClient, db: AsyncSession, employee, manager, vacation,
    ):
        await db.commit()
        created = await client.post(REQUESTS, json=_body(vacation), headers=auth_headers(employee))
        request_id = created.json()["id"]

        queue = await client.get(
            REQUESTS, params={"scope": "approvals"}, headers=auth_headers(manager),
        )
        assert [r["id"] for r in queue.json()["data"]] == [request_id]

        approved = await client.put(
            f"{REQUESTS}/{request_id}/approve",
            json={"comment": "Enjoy"},
            headers=auth_headers(manager),
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

        again = await client.put(
            f"{REQUESTS}/{request_id}/approve", json={}, headers=auth_headers(manager),
        )
        assert again.status_code == 409
        assert again.json()["code"] == "invalid-transition"

        cancelled = await client.put(
            f"{REQUESTS}/{request_id}/cancel", headers=auth_headers(employee),
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "cancelled"

        detail = await client.get(f"{REQUESTS}/{request_id}", headers=auth_headers(employee))
        assert detail.status_code == 200
        approvals = detail.json()["approvals"]
        assert len(approvals) == 1
        assert approvals[0]["decision"] == "approved"
        assert approvals[0]["comment"] == "Enjoy"

        balances = await client.get(
            "/api/v1/leave/balances", params={"year": 2024}, headers=auth_headers(employee),
        )
        row = balances.json()[0]
        assert Decimal(str(row["used"])) == Decimal("0")
        assert Decimal(str(row["remaining"])) == Decimal("30")

    async def test_reject_requires_reason(
        self, client: AsyncClient, db: AsyncSession, employee, manager, vacation,
    ):
        await db.commit()
        created = await client.post(REQUESTS, json=_body(vacation), headers=auth_headers(employee))
        request_id = created.json()["id"]

        missing = await client.put(
            f"{REQUESTS}/{request_id}/reject", json={}, headers=auth_headers(manager),
        )
        assert missing.status_code == 422

        rejected = await client.put(
            f"{REQUESTS}/{request_id}/reject",
            json={"reason": "Quarter close"},
            headers=auth_headers(manager),
        )
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"

    async def test_owner_cannot_approve(
        self, client: AsyncClient, db: AsyncSession, manager, vacation,
    ):
        await db.commit()
        created = await client.post(REQUESTS, json=_body(vacation), headers=auth_headers(manager))

        resp = await client.put(
            f"{REQUESTS}/{created.json()['id']}/approve", json={}, headers=auth_headers(manager),
        )

        assert resp.status_code == 403
        assert resp.json()["code"] == "forbidden"

    async def test_withdraw(self, client: AsyncClient, db: AsyncSession, employee, vacation):
        await db.commit()
        created = await client.post(REQUESTS, json=_body(vacation), headers=auth_headers(employee))

        resp = await client.put(
            f"{REQUESTS}/{created.json()['id']}/withdraw", headers=auth_headers(employee),
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == "withdrawn"

    async def test_other_organization_gets_404(
        self, client: AsyncClient, db: AsyncSession, employee, vacation,
    ):
        other = await seed_organization(db, name="Other AG")
        foreign_admin = await seed_member(db, other, role=MemberRole.admin, name="Fred Foreign")
        await db.commit()
        created = await client.post(REQUESTS, json=_body(vacation), headers=auth_headers(employee))
        request_id = created.json()["id"]

        detail = await client.get(f"{REQUESTS}/{request_id}", headers=auth_headers(foreign_admin))
        approve = await client.put(
            f"{REQUESTS}/{request_id}/approve", json={}, headers=auth_headers(foreign_admin),
        )

        assert detail.status_code == 404
        assert approve.status_code == 404

    async def test_unknown_request_404(self, client: AsyncClient, db: AsyncSession, manager):
        await db.commit()

        resp = await client.get(f"{REQUESTS}/{uuid.uuid4()}", headers=auth_headers(manager))

        assert resp.status_code == 404


# ── Reads ───────────────────────────────────────────────────────────


class TestReadAPI:

    async def test_leave_types(self, client: AsyncClient, db: AsyncSession, employee, vacation):
        await db.commit()

        resp = await client.get("/api/v1/leave/types", headers=auth_headers(employee))

        assert resp.status_code == 200
        assert [t["code"] for t in resp.json()] == ["VACATION"]

    async def test_member_cannot_read_colleague_balances(
        self, client: AsyncClient, db: AsyncSession, organization, employee,
    ):
        colleague = await seed_member(db, organization, name="Carl Colleague")
        await db.commit()

        resp = await client.get(
            "/api/v1/leave/balances",
            params={"user_id": str(colleague.user_id), "year": 2024},
            headers=auth_headers(employee),
        )

        assert resp.status_code == 403

    async def test_list_filters_by_status(
        self, client: AsyncClient, db: AsyncSession, employee, vacation,
    ):
        await db.commit()
        headers = auth_headers(employee)
        await client.post(REQUESTS, json=_body(vacation), headers=headers)

        pending = await client.get(REQUESTS, params={"status": "pending"}, headers=headers)
        approved = await client.get(REQUESTS, params={"status": "approved"}, headers=headers)

        assert pending.json()["meta"]["total"] == 1
        assert approved.json()["meta"]["total"] == 0

    async def test_member_has_no_approval_queue(
        self, client: AsyncClient, db: AsyncSession, employee,
    ):
        await db.commit()

        resp = await client.get(
            REQUESTS, params={"scope": "approvals"}, headers=auth_headers(employee),
        )

        assert resp.status_code == 403
