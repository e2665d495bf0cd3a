"""Leave router — apply, review, cancel, balances, stats and calendar.

All endpoints require authentication. Review endpoints require manager or admin.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import LeaveStatus, LeaveType, UserRole
from leavedesk.common.pagination import PaginatedResponse, PaginationParams
from leavedesk.dashboard.schemas import CalendarEvent, LeaveStatsOut
from leavedesk.dashboard.service import DashboardService
from leavedesk.database import get_db
from leavedesk.leave.schemas import (
    LeaveApproveRequest,
    LeaveFilters,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
)
from leavedesk.leave.service import LeaveService
from leavedesk.users.models import User
from leavedesk.users.schemas import LeaveBalanceOut

router = APIRouter(prefix="", tags=["leaves"])

_reviewer_dep = require_role(UserRole.manager, UserRole.admin)


# ── POST / ──────────────────────────────────────────────────────────

@router.post("/", response_model=LeaveRequestOut, status_code=201)
async def apply_leave(
    body: LeaveRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave. Validates dates, overlap and balance."""
    return await LeaveService.apply_leave(db, user.id, body)


# ── GET / ───────────────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[LeaveRequestOut])
async def list_leaves(
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveType] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    start_date_from: Optional[date] = Query(None),
    start_date_to: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Leave requests visible to the caller (self, team + self, or all)."""
    filters = LeaveFilters(
        status=status,
        leave_type=leave_type,
        employee_id=employee_id,
        start_date_from=start_date_from,
        start_date_to=start_date_to,
    )
    return await LeaveService.get_leave_requests(
        db, user, filters, page=pagination.page, limit=pagination.limit,
    )


# ── GET /calendar ───────────────────────────────────────────────────

@router.get("/calendar", response_model=list[CalendarEvent])
async def leave_calendar(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    status: Optional[LeaveStatus] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService.get_calendar_events(
        db, user, month=month, year=year, status=status,
    )


# ── GET /my-balance ─────────────────────────────────────────────────

@router.get("/my-balance", response_model=LeaveBalanceOut)
async def my_balance(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balance(db, user.id)


# ── GET /stats ──────────────────────────────────────────────────────

@router.get("/stats", response_model=LeaveStatsOut)
async def leave_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService.get_leave_stats(db, user)


# ── GET /pending-approvals ──────────────────────────────────────────

@router.get("/pending-approvals", response_model=list[LeaveRequestOut])
async def pending_approvals(
    user: User = Depends(_reviewer_dep),
    db: AsyncSession = Depends(get_db),
):
    """Pending requests the caller can review, oldest first."""
    return await LeaveService.get_pending_approvals(db, user)


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{request_id}", response_model=LeaveRequestOut)
async def get_leave(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave(db, user, request_id)


# ── PUT /{id}/approve ───────────────────────────────────────────────

@router.put("/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: Optional[LeaveApproveRequest] = None,
    user: User = Depends(_reviewer_dep),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending leave request. Deducts from balance."""
    return await LeaveService.approve_leave(
        db, request_id, user.id,
        review_comment=body.review_comment if body else None,
    )


# ── PUT /{id}/reject ────────────────────────────────────────────────

@router.put("/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    user: User = Depends(_reviewer_dep),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.reject_leave(db, request_id, user.id, body.review_comment)


# ── PUT /{id}/cancel ────────────────────────────────────────────────

@router.put("/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel own (or, for admins, any) pending/approved request."""
    return await LeaveService.cancel_leave(db, request_id, user.id)
