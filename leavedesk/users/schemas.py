"""User directory Pydantic v2 schemas.

Naming conventions:
  - *Create / *Update → request bodies (write)
  - *Out              → response bodies (read)
  - *Brief            → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leavedesk.common.constants import LeaveStatus, UserRole


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class UserBrief(BaseModel):
    """Minimal user info embedded in leave / claim responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    department: str
    position: str
    avatar: Optional[str] = None


class LeaveBalanceOut(BaseModel):
    """Per-type balance snapshot."""

    annual: Decimal
    sick: Decimal
    casual: Decimal
    unpaid: Decimal


# ═════════════════════════════════════════════════════════════════════
# User
# ═════════════════════════════════════════════════════════════════════


class UserOut(BaseModel):
    """Full user profile."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    department: str
    position: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    initials: str
    manager_id: Optional[uuid.UUID] = None
    manager: Optional[UserBrief] = None
    leave_balance: LeaveBalanceOut
    is_active: bool
    joined_date: date
    created_at: datetime


class LeaveSummaryItem(BaseModel):
    count: int = 0
    days: Decimal = Decimal("0")


class UserDetailOut(UserOut):
    """User profile plus a per-status summary of their leave requests."""

    leave_summary: dict[LeaveStatus, LeaveSummaryItem] = Field(default_factory=dict)


class UserUpdate(BaseModel):
    """Profile fields editable by the user themself or an admin."""

    name: Optional[str] = Field(None, min_length=2, max_length=50)
    department: Optional[str] = Field(None, min_length=1, max_length=100)
    position: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    avatar: Optional[str] = Field(None, max_length=500)
    # Admin-only; None clears the manager when sent explicitly
    manager_id: Optional[uuid.UUID] = None


# ═════════════════════════════════════════════════════════════════════
# Admin
# ═════════════════════════════════════════════════════════════════════


class RoleChangeRequest(BaseModel):
    role: UserRole


class AssignManagerRequest(BaseModel):
    manager_id: Optional[uuid.UUID] = None


class BalanceAdjustRequest(BaseModel):
    """Absolute balance values; omitted types are left unchanged."""

    annual: Optional[Decimal] = None
    sick: Optional[Decimal] = None
    casual: Optional[Decimal] = None
