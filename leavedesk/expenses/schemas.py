"""Reimbursement Pydantic v2 schemas — request / response validation."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leavedesk.common.constants import ClaimStatus, ExpenseType
from leavedesk.users.schemas import UserBrief


# ── Create ──────────────────────────────────────────────────────────


class ClaimCreate(BaseModel):
    """Claim fields; the receipt is uploaded alongside as a file."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: ExpenseType
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: str = Field(..., min_length=5, max_length=500)
    expense_date: date


# ── Review ──────────────────────────────────────────────────────────


class ClaimApproveRequest(BaseModel):
    review_comment: Optional[str] = Field(None, max_length=300)


class ClaimRejectRequest(BaseModel):
    review_comment: str = Field(..., max_length=300)


# ── Response ────────────────────────────────────────────────────────


class ClaimOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee: Optional[UserBrief] = None
    type: ExpenseType
    amount: Decimal
    description: str
    receipt_url: str
    expense_date: date
    status: ClaimStatus
    reviewed_by: Optional[uuid.UUID] = None
    reviewer: Optional[UserBrief] = None
    review_comment: str = ""
    reviewed_at: Optional[datetime] = None
    created_at: datetime


# ── Filters ─────────────────────────────────────────────────────────


class ClaimFilters(BaseModel):
    status: Optional[ClaimStatus] = None
    type: Optional[ExpenseType] = None
    employee_id: Optional[uuid.UUID] = None
