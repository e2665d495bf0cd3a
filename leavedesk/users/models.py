"""User ORM model — identity, role, manager edge and leave balances."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import InstrumentedAttribute, Mapped, mapped_column, relationship

from leavedesk.common.constants import DEFAULT_LEAVE_BALANCE, LeaveType, UserRole
from leavedesk.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        sa.Index("ix_users_manager_id", "manager_id"),
        sa.Index("ix_users_role", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role"),
        nullable=False,
        default=UserRole.employee,
    )
    department: Mapped[str] = mapped_column(
        sa.String(100), nullable=False, default="General",
    )
    position: Mapped[str] = mapped_column(
        sa.String(100), nullable=False, default="Staff",
    )
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    annual_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), nullable=False, default=DEFAULT_LEAVE_BALANCE[LeaveType.annual],
    )
    sick_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), nullable=False, default=DEFAULT_LEAVE_BALANCE[LeaveType.sick],
    )
    casual_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), nullable=False, default=DEFAULT_LEAVE_BALANCE[LeaveType.casual],
    )
    unpaid_balance: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), nullable=False, default=DEFAULT_LEAVE_BALANCE[LeaveType.unpaid],
    )
    avatar: Mapped[Optional[str]] = mapped_column(sa.String(500))
    phone: Mapped[Optional[str]] = mapped_column(sa.String(30))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    joined_date: Mapped[date] = mapped_column(
        sa.Date, nullable=False, default=lambda: _utcnow().date(),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow,
    )

    # Relationships
    manager: Mapped[Optional[User]] = relationship(
        remote_side=[id], foreign_keys=[manager_id],
    )

    @staticmethod
    def balance_column(leave_type: LeaveType) -> InstrumentedAttribute:
        """Mapped column holding the balance for *leave_type*."""
        return getattr(User, f"{LeaveType(leave_type).value}_balance")

    @property
    def leave_balance(self) -> dict[str, Decimal]:
        return {lt.value: getattr(self, f"{lt.value}_balance") for lt in LeaveType}

    @property
    def initials(self) -> str:
        parts = self.name.split()
        return "".join(p[0] for p in parts[:2]).upper()

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"
