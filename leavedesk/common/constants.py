"""Enums and constants for LeaveDesk — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    annual = "annual"
    sick = "sick"
    casual = "casual"
    unpaid = "unpaid"


class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class HalfDayPeriod(str, enum.Enum):
    morning = "morning"
    afternoon = "afternoon"


# ── Reimbursements ──────────────────────────────────────────────────

class ExpenseType(str, enum.Enum):
    travel = "travel"
    food = "food"
    office_supplies = "office_supplies"
    internet = "internet"
    other = "other"


class ClaimStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# ── Balances ────────────────────────────────────────────────────────

DEFAULT_LEAVE_BALANCE: dict[LeaveType, Decimal] = {
    LeaveType.annual: Decimal("20"),
    LeaveType.sick: Decimal("10"),
    LeaveType.casual: Decimal("5"),
    LeaveType.unpaid: Decimal("999"),
}

# Leave types whose balance is adjusted by approvals and cancellations
BALANCE_TRACKED_TYPES = (LeaveType.annual, LeaveType.sick, LeaveType.casual)

# ── Calendar ────────────────────────────────────────────────────────

STATUS_COLORS: dict[LeaveStatus, str] = {
    LeaveStatus.pending: "#F59E0B",
    LeaveStatus.approved: "#10B981",
    LeaveStatus.rejected: "#EF4444",
    LeaveStatus.cancelled: "#6B7280",
}
CALENDAR_TEXT_COLOR = "#ffffff"

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10
TREND_MONTHS = 6
MIN_REVIEW_COMMENT_LENGTH = 5
DEFAULT_APPROVAL_COMMENT = "Approved"
