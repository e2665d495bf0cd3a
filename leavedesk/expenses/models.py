"""Reimbursement ORM model: ReimbursementClaim.

SQLAlchemy 2.0 async-compatible models.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavedesk.common.constants import ClaimStatus, ExpenseType
from leavedesk.database import Base
from leavedesk.users.models import User


class ReimbursementClaim(Base):
    """Employee expense claim awaiting (or past) review."""

    __tablename__ = "reimbursement_claims"
    __table_args__ = (
        sa.Index("ix_reimbursement_claims_employee_status", "employee_id", "status"),
        sa.CheckConstraint("amount > 0", name="ck_reimbursement_claims_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[ExpenseType] = mapped_column(
        sa.Enum(ExpenseType, name="expense_type"), nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(sa.Numeric(12, 2), nullable=False)
    description: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    receipt_url: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    expense_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[ClaimStatus] = mapped_column(
        sa.Enum(ClaimStatus, name="claim_status"),
        nullable=False,
        default=ClaimStatus.pending,
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL"),
    )
    review_comment: Mapped[str] = mapped_column(
        sa.String(300), nullable=False, default="",
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    employee: Mapped[User] = relationship(foreign_keys=[employee_id])
    reviewer: Mapped[Optional[User]] = relationship(foreign_keys=[reviewed_by])

    def __repr__(self) -> str:
        return f"<ReimbursementClaim {self.type.value} {self.amount} ({self.status.value})>"
