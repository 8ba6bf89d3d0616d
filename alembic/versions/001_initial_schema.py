"""001 – Initial schema: tenants, leave ledger, holidays, audit trail.

Revision ID: 001_initial_schema
Revises:
Create Date: 2024-05-06 09:00:00.000000+02:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("member_role", ["admin", "manager", "member"]),
    ("membership_status", ["active", "invited", "deactivated"]),
    ("leave_status", ["pending", "approved", "rejected", "withdrawn", "cancelled"]),
    ("half_day", ["morning", "afternoon"]),
    ("approval_decision", ["approved", "rejected"]),
    ("holiday_type", ["public", "company", "optional"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            email       VARCHAR(255) NOT NULL UNIQUE,
            name        VARCHAR(200),
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. organizations ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE organizations (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(200) NOT NULL,
            slug        VARCHAR(100) NOT NULL UNIQUE,
            country     VARCHAR(5)   NOT NULL DEFAULT 'DE',
            region      VARCHAR(10),
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. organization_members ───────────────────────────────────────────
    op.execute("""
        CREATE TABLE organization_members (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID NOT NULL REFERENCES organizations(id),
            user_id         UUID NOT NULL REFERENCES users(id),
            role            member_role       NOT NULL DEFAULT 'member',
            status          membership_status NOT NULL DEFAULT 'active',
            joined_on       DATE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_organization_member UNIQUE (organization_id, user_id)
        )
    """)
    op.execute("""
        CREATE INDEX idx_members_user_status
            ON organization_members(user_id, status)
    """)

    # ── 4. public_holidays ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE public_holidays (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID REFERENCES organizations(id),
            date            DATE         NOT NULL,
            name            VARCHAR(200) NOT NULL,
            country         VARCHAR(5)   NOT NULL DEFAULT 'DE',
            region          VARCHAR(10),
            holiday_type    holiday_type NOT NULL DEFAULT 'public',
            is_half_day     BOOLEAN DEFAULT FALSE,
            created_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_public_holidays_country_date
            ON public_holidays(country, date)
    """)
    op.execute("""
        CREATE INDEX ix_public_holidays_org_date
            ON public_holidays(organization_id, date)
    """)

    # ── 5. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id       UUID REFERENCES organizations(id),
            code                  VARCHAR(30)  NOT NULL,
            name                  VARCHAR(100) NOT NULL,
            description           TEXT,
            is_paid               BOOLEAN DEFAULT TRUE,
            requires_approval     BOOLEAN DEFAULT TRUE,
            requires_document     BOOLEAN DEFAULT FALSE,
            document_grace_days   INTEGER,
            has_allowance         BOOLEAN DEFAULT TRUE,
            default_days_per_year NUMERIC(5,1),
            allow_negative        BOOLEAN DEFAULT FALSE,
            allow_half_days       BOOLEAN DEFAULT TRUE,
            allow_carryover       BOOLEAN DEFAULT FALSE,
            max_carryover_days    NUMERIC(5,1),
            is_active             BOOLEAN DEFAULT TRUE,
            sort_order            INTEGER DEFAULT 0,
            created_at            TIMESTAMPTZ DEFAULT NOW(),
            updated_at            TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_type_org_code UNIQUE (organization_id, code)
        )
    """)
    # System types have organization_id NULL, which UNIQUE does not cover
    op.execute("""
        CREATE UNIQUE INDEX uq_leave_type_system_code
            ON leave_types(code) WHERE organization_id IS NULL
    """)

    # ── 6. leave_balances ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_balances (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID NOT NULL REFERENCES organizations(id),
            user_id         UUID NOT NULL REFERENCES users(id),
            leave_type_id   UUID NOT NULL REFERENCES leave_types(id),
            year            INTEGER      NOT NULL,
            entitled        NUMERIC(5,1) NOT NULL DEFAULT 0,
            carried_over    NUMERIC(5,1) NOT NULL DEFAULT 0,
            adjustment      NUMERIC(5,1) NOT NULL DEFAULT 0,
            used            NUMERIC(5,1) NOT NULL DEFAULT 0,
            pending         NUMERIC(5,1) NOT NULL DEFAULT 0,
            notes           TEXT,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance
                UNIQUE (organization_id, user_id, leave_type_id, year),
            CONSTRAINT ck_leave_balance_used_non_negative CHECK (used >= 0),
            CONSTRAINT ck_leave_balance_pending_non_negative CHECK (pending >= 0)
        )
    """)

    # ── 7. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id     UUID NOT NULL REFERENCES organizations(id),
            user_id             UUID NOT NULL REFERENCES users(id),
            leave_type_id       UUID NOT NULL REFERENCES leave_types(id),
            start_date          DATE NOT NULL,
            end_date            DATE NOT NULL,
            start_half_day      half_day,
            end_half_day        half_day,
            work_days           NUMERIC(5,1) NOT NULL,
            reason              TEXT,
            status              leave_status NOT NULL DEFAULT 'pending',
            submitted_at        TIMESTAMPTZ NOT NULL,
            cancelled_at        TIMESTAMPTZ,
            cancelled_by        UUID REFERENCES users(id),
            cancellation_reason TEXT,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_dates CHECK (end_date >= start_date),
            CONSTRAINT ck_leave_request_work_days CHECK (work_days > 0)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_user_dates
            ON leave_requests(user_id, start_date, end_date)
    """)
    op.execute("""
        CREATE INDEX idx_leave_requests_org_status
            ON leave_requests(organization_id, status)
    """)

    # ── 8. leave_approvals ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_approvals (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_request_id UUID NOT NULL REFERENCES leave_requests(id),
            approver_id      UUID NOT NULL REFERENCES users(id),
            decision         approval_decision NOT NULL,
            comment          TEXT,
            decided_at       TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX idx_leave_approvals_request
            ON leave_approvals(leave_request_id, decided_at)
    """)

    # ── 9. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            organization_id UUID,
            actor_id        UUID,
            action          VARCHAR(50) NOT NULL,
            entity_type     VARCHAR(50) NOT NULL,
            entity_id       UUID NOT NULL,
            old_values      JSONB,
            new_values      JSONB,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_audit_trail_entity
            ON audit_trail(entity_type, entity_id)
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id   ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail(created_at)")

    # ══════════════════════════════════════════════════════════════════════
    # SEED DATA
    # ══════════════════════════════════════════════════════════════════════

    # System leave types (organization_id NULL)
    op.execute("""
        INSERT INTO leave_types
            (code, name, description, is_paid, has_allowance, default_days_per_year,
             allow_carryover, max_carryover_days, requires_document,
             document_grace_days, sort_order)
        VALUES
            ('VACATION', 'Vacation',      'Annual paid vacation',                                         TRUE,  TRUE,  30,   TRUE,  5,    FALSE, NULL, 10),
            ('SICK',     'Sick leave',    'Illness; a medical certificate is due after the grace period', TRUE,  FALSE, NULL, FALSE, NULL, TRUE,  3,    20),
            ('SPECIAL',  'Special leave', 'Paid leave for personal events (wedding, moving, bereavement)', TRUE, TRUE,  3,    FALSE, NULL, FALSE, NULL, 30),
            ('UNPAID',   'Unpaid leave',  NULL,                                                           FALSE, FALSE, NULL, FALSE, NULL, FALSE, NULL, 40)
    """)


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "leave_approvals",
        "leave_requests",
        "leave_balances",
        "leave_types",
        "public_holidays",
        "organization_members",
        "organizations",
        "users",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    # Drop extensions
    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
