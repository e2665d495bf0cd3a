"""User directory router — listing, profiles and per-user leave history."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth import policy
from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import LeaveStatus, LeaveType, UserRole
from leavedesk.common.exceptions import ForbiddenException
from leavedesk.common.pagination import PaginatedResponse, PaginationParams
from leavedesk.database import get_db
from leavedesk.leave.schemas import LeaveFilters, LeaveRequestOut
from leavedesk.leave.service import LeaveService
from leavedesk.users.models import User
from leavedesk.users.schemas import UserBrief, UserDetailOut, UserOut, UserUpdate
from leavedesk.users.service import UserService

router = APIRouter(prefix="", tags=["users"])


@router.get("/", response_model=PaginatedResponse[UserOut])
async def list_users(
    department: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    pagination: PaginationParams = Depends(),
    user: User = Depends(require_role(UserRole.manager, UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Active users: the caller's team for managers, everyone for admins."""
    return await UserService.list_users(
        db, user,
        department=department, role=role, search=search,
        page=pagination.page, limit=pagination.limit,
    )


@router.get("/managers", response_model=list[UserBrief])
async def list_managers(
    _user: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await UserService.list_managers(db)


@router.get("/{user_id}", response_model=UserDetailOut)
async def get_user(
    user_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserService.get_user(db, user, user_id)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update a profile (self or admin). Changing the manager is admin-only."""
    return await UserService.update_user(db, user, user_id, body)


@router.get("/{user_id}/leaves", response_model=PaginatedResponse[LeaveRequestOut])
async def user_leaves(
    user_id: uuid.UUID,
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveType] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Leave history of one user, subject to the usual visibility rules."""
    target = await UserService.find_user(db, user_id)
    if not policy.can_view_employee(user, target):
        raise ForbiddenException("Access denied.")

    filters = LeaveFilters(status=status, leave_type=leave_type, employee_id=target.id)
    return await LeaveService.get_leave_requests(
        db, user, filters, page=pagination.page, limit=pagination.limit,
    )
