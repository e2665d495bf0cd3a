"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leavedesk.common.constants import HalfDayPeriod, LeaveStatus, LeaveType
from leavedesk.users.schemas import UserBrief


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Create
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying a leave request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    leave_type: LeaveType
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: str = Field(..., min_length=10, max_length=500)
    is_half_day: bool = False
    half_day_period: Optional[HalfDayPeriod] = None
    emergency_contact: Optional[str] = Field(None, max_length=100)
    attachment_url: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def _normalise_dates(self) -> "LeaveRequestCreate":
        if self.is_half_day:
            # A half day is always a single day
            self.end_date = self.start_date
        else:
            self.half_day_period = None
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Review
# ═════════════════════════════════════════════════════════════════════


class LeaveApproveRequest(BaseModel):
    """Optional reviewer comment on approval."""

    review_comment: Optional[str] = Field(None, max_length=300)


class LeaveRejectRequest(BaseModel):
    """Rejection requires a comment of at least 5 characters (checked trimmed)."""

    review_comment: str = Field(..., max_length=300)


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee: Optional[UserBrief] = None
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: Decimal
    is_half_day: bool
    half_day_period: Optional[HalfDayPeriod] = None
    reason: str
    status: LeaveStatus
    reviewed_by: Optional[uuid.UUID] = None
    reviewer: Optional[UserBrief] = None
    review_comment: str = ""
    reviewed_at: Optional[datetime] = None
    cancelled_by: Optional[uuid.UUID] = None
    cancelled_at: Optional[datetime] = None
    attachment_url: Optional[str] = None
    emergency_contact: Optional[str] = None
    created_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Filters
# ═════════════════════════════════════════════════════════════════════


class LeaveFilters(BaseModel):
    """Optional filters accepted by the leave list operations."""

    status: Optional[LeaveStatus] = None
    leave_type: Optional[LeaveType] = None
    employee_id: Optional[uuid.UUID] = None
    start_date_from: Optional[date] = None
    start_date_to: Optional[date] = None
    department: Optional[str] = None
