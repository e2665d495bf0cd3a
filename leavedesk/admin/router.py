"""Admin router — organisation dashboard, user management, all leaves.

All endpoints require the admin role.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.admin.service import AdminService
from leavedesk.auth.dependencies import require_role
from leavedesk.common.constants import LeaveStatus, LeaveType, UserRole
from leavedesk.common.pagination import PaginatedResponse, PaginationParams
from leavedesk.dashboard.schemas import DashboardStatsOut
from leavedesk.dashboard.service import DashboardService
from leavedesk.database import get_db
from leavedesk.leave.schemas import LeaveFilters, LeaveRequestOut
from leavedesk.leave.service import LeaveService
from leavedesk.users.models import User
from leavedesk.users.schemas import (
    AssignManagerRequest,
    BalanceAdjustRequest,
    RoleChangeRequest,
    UserOut,
)

router = APIRouter(prefix="", tags=["admin"])

_admin_dep = require_role(UserRole.admin)


# ═══════════════════════════════════════════════════════════════════
# DASHBOARD
# ═══════════════════════════════════════════════════════════════════

@router.get("/stats", response_model=DashboardStatsOut)
async def dashboard_stats(
    _user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """User counts, leave counts, six-month trend and department breakdown."""
    return await DashboardService.get_dashboard_stats(db)


# ═══════════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════════

@router.get("/users", response_model=PaginatedResponse[UserOut])
async def list_all_users(
    role: Optional[UserRole] = Query(None),
    department: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    pagination: PaginationParams = Depends(),
    _user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.list_all_users(
        db,
        role=role, department=department, is_active=is_active, search=search,
        page=pagination.page, limit=pagination.limit,
    )


@router.put("/users/{user_id}/role", response_model=UserOut)
async def change_role(
    user_id: uuid.UUID,
    body: RoleChangeRequest,
    user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Change a user's role. Demoting a manager detaches their reports."""
    return await AdminService.change_role(db, user, user_id, body.role)


@router.put("/users/{user_id}/toggle", response_model=UserOut)
async def toggle_user_status(
    user_id: uuid.UUID,
    user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.toggle_user_status(db, user, user_id)


@router.put("/users/{user_id}/assign-manager", response_model=UserOut)
async def assign_manager(
    user_id: uuid.UUID,
    body: AssignManagerRequest,
    user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.assign_manager(db, user, user_id, body.manager_id)


@router.put("/users/{user_id}/leave-balance", response_model=UserOut)
async def adjust_leave_balance(
    user_id: uuid.UUID,
    body: BalanceAdjustRequest,
    user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    return await AdminService.adjust_leave_balance(db, user, user_id, body)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: uuid.UUID,
    user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Permanently delete a user with their leave requests and claims."""
    name = await AdminService.delete_user(db, user, user_id)
    return {"message": f"User {name} and all their records have been deleted."}


# ═══════════════════════════════════════════════════════════════════
# LEAVES
# ═══════════════════════════════════════════════════════════════════

@router.get("/leaves", response_model=PaginatedResponse[LeaveRequestOut])
async def list_all_leaves(
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveType] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    department: Optional[str] = Query(None),
    start_date_from: Optional[date] = Query(None),
    start_date_to: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """All leave requests system-wide, with a department filter."""
    filters = LeaveFilters(
        status=status,
        leave_type=leave_type,
        employee_id=employee_id,
        department=department,
        start_date_from=start_date_from,
        start_date_to=start_date_to,
    )
    return await LeaveService.get_leave_requests(
        db, user, filters, page=pagination.page, limit=pagination.limit,
    )
