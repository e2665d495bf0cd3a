"""Reporting Pydantic v2 schemas — stats, admin dashboard, calendar events."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from leavedesk.common.constants import (
    ClaimStatus,
    ExpenseType,
    LeaveStatus,
    LeaveType,
)
from leavedesk.leave.schemas import LeaveRequestOut


# ═════════════════════════════════════════════════════════════════════
# Leave stats (per requester scope)
# ═════════════════════════════════════════════════════════════════════


class StatusBucket(BaseModel):
    count: int = 0
    days: Decimal = Decimal("0")


class LeaveTypeBucket(BaseModel):
    leave_type: LeaveType
    count: int = 0
    days: Decimal = Decimal("0")


class LeaveStatsOut(BaseModel):
    """Visible requests grouped by status, plus approved requests by type."""

    by_status: dict[LeaveStatus, StatusBucket]
    approved_days: Decimal = Decimal("0")
    by_type: list[LeaveTypeBucket] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Claim stats (per requester scope)
# ═════════════════════════════════════════════════════════════════════


class ClaimStatusBucket(BaseModel):
    count: int = 0
    amount: Decimal = Decimal("0")


class ExpenseTypeBucket(BaseModel):
    type: ExpenseType
    count: int = 0
    amount: Decimal = Decimal("0")


class ClaimStatsOut(BaseModel):
    by_status: dict[ClaimStatus, ClaimStatusBucket]
    approved_amount: Decimal = Decimal("0")
    by_type: list[ExpenseTypeBucket] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Admin dashboard
# ═════════════════════════════════════════════════════════════════════


class UserCounts(BaseModel):
    total: int = 0
    employees: int = 0
    managers: int = 0
    admins: int = 0
    active: int = 0
    inactive: int = 0


class LeaveCounts(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    cancelled: int = 0


class MonthlyTrendPoint(BaseModel):
    year: int
    month: int
    total: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0


class DepartmentLeaveStat(BaseModel):
    department: str
    total: int = 0
    approved: int = 0
    pending: int = 0


class DashboardStatsOut(BaseModel):
    """Organisation-wide figures for the admin dashboard."""

    users: UserCounts
    leaves: LeaveCounts
    leaves_by_type: list[LeaveTypeBucket] = Field(default_factory=list)
    monthly_trend: list[MonthlyTrendPoint] = Field(default_factory=list)
    department_stats: list[DepartmentLeaveStat] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# Calendar
# ═════════════════════════════════════════════════════════════════════


class CalendarEvent(BaseModel):
    """One leave request rendered for a calendar widget (end is exclusive)."""

    id: uuid.UUID
    title: str
    start: date
    end: date
    background_color: str
    border_color: str
    text_color: str
    extended_props: LeaveRequestOut
