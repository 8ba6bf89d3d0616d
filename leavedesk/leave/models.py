"""Leave ORM models: LeaveType, LeaveBalance, LeaveRequest, LeaveApproval."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavedesk.common.constants import ApprovalDecision, HalfDay, LeaveStatus
from leavedesk.database import Base


class LeaveType(Base):
    __tablename__ = "leave_types"
    __table_args__ = (
        sa.UniqueConstraint("organization_id", "code", name="uq_leave_type_org_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    # NULL → system-wide default available to every organization
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("organizations.id")
    )
    code: Mapped[str] = mapped_column(sa.String(30), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_paid: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    requires_approval: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    requires_document: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    document_grace_days: Mapped[Optional[int]] = mapped_column(sa.Integer)
    has_allowance: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    default_days_per_year: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 1))
    allow_negative: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    allow_half_days: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    allow_carryover: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    max_carryover_days: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(5, 1))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    sort_order: Mapped[int] = mapped_column(sa.Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    balances: Mapped[list[LeaveBalance]] = relationship(back_populates="leave_type")
    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")

    @property
    def enforces_balance(self) -> bool:
        """Whether reservations must stay within the remaining balance."""
        return self.has_allowance and not self.allow_negative


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "organization_id", "user_id", "leave_type_id", "year",
            name="uq_leave_balance",
        ),
        sa.CheckConstraint("used >= 0", name="ck_leave_balance_used_non_negative"),
        sa.CheckConstraint("pending >= 0", name="ck_leave_balance_pending_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    entitled: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    carried_over: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    adjustment: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    used: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    pending: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), nullable=False, default=Decimal("0")
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    leave_type: Mapped[LeaveType] = relationship(back_populates="balances")

    # remaining is derived from the five base quantities, never stored
    @hybrid_property
    def remaining(self) -> Decimal:
        return (
            Decimal(self.entitled or 0)
            + Decimal(self.carried_over or 0)
            + Decimal(self.adjustment or 0)
            - Decimal(self.used or 0)
            - Decimal(self.pending or 0)
        )

    @remaining.inplace.expression
    @classmethod
    def _remaining_expression(cls) -> sa.ColumnElement[Decimal]:
        return cls.entitled + cls.carried_over + cls.adjustment - cls.used - cls.pending


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_dates"),
        sa.CheckConstraint("work_days > 0", name="ck_leave_request_work_days"),
        sa.Index("ix_leave_requests_user_dates", "user_id", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("organizations.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    start_half_day: Mapped[Optional[HalfDay]] = mapped_column(
        sa.Enum(HalfDay, name="half_day")
    )
    end_half_day: Mapped[Optional[HalfDay]] = mapped_column(
        sa.Enum(HalfDay, name="half_day")
    )
    work_days: Mapped[Decimal] = mapped_column(sa.Numeric(5, 1), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
    )
    submitted_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    cancelled_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests")
    approvals: Mapped[list[LeaveApproval]] = relationship(
        back_populates="leave_request",
        order_by="LeaveApproval.decided_at",
    )

    @property
    def balance_year(self) -> int:
        return self.start_date.year


class LeaveApproval(Base):
    """Append-only decision record. Rows are never updated or deleted."""

    __tablename__ = "leave_approvals"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    leave_request_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_requests.id"), nullable=False
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    decision: Mapped[ApprovalDecision] = mapped_column(
        sa.Enum(ApprovalDecision, name="approval_decision"), nullable=False
    )
    comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    decided_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )

    # Relationships
    leave_request: Mapped[LeaveRequest] = relationship(back_populates="approvals")
