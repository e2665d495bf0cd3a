"""User directory service — lookups, team membership, balances, profiles.

Business logic:
  - Directory lookups used by the ledgers (find user, team members)
  - Atomic balance increments (single UPDATE, never read-modify-write)
  - Role-based visibility scope shared by every list/get operation
  - Profile listing, detail with leave summary, and updates
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.auth import policy
from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import LeaveStatus, LeaveType, UserRole
from leavedesk.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.filters import apply_filters, apply_search
from leavedesk.common.pagination import PaginatedResponse, paginate
from leavedesk.users.models import User
from leavedesk.users.schemas import (
    LeaveBalanceOut,
    LeaveSummaryItem,
    UserBrief,
    UserDetailOut,
    UserOut,
    UserUpdate,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# UserService
# ═════════════════════════════════════════════════════════════════════


class UserService:
    """Async directory operations over the ``users`` table."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def build_user_response(user: User) -> UserOut:
        return UserOut.model_validate(user)

    @staticmethod
    async def validate_manager(
        db: AsyncSession,
        user: User,
        manager_id: Optional[uuid.UUID],
    ) -> Optional[User]:
        """Resolve *manager_id* into a manager for *user* (``None`` clears)."""
        if manager_id is None:
            return None
        if manager_id == user.id:
            raise ValidationException(
                {"manager_id": ["A user cannot be their own manager."]}
            )
        result = await db.execute(select(User).where(User.id == manager_id))
        manager = result.scalars().first()
        if manager is None or manager.role != UserRole.manager:
            raise ValidationException(
                {"manager_id": ["Invalid manager. User must have the manager role."]}
            )
        return manager

    # ─────────────────────────────────────────────────────────────────
    # Directory lookups
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def find_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        active_only: bool = False,
    ) -> User:
        """Load a user (with manager) or raise NotFound."""
        query = (
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.manager))
        )
        if active_only:
            query = query.where(User.is_active.is_(True))
        user = (await db.execute(query)).scalars().first()
        if user is None:
            raise NotFoundException("User", str(user_id))
        return user

    @staticmethod
    async def find_team_members(
        db: AsyncSession,
        manager_id: uuid.UUID,
    ) -> list[uuid.UUID]:
        """Ids of every direct report of *manager_id*."""
        result = await db.execute(
            select(User.id).where(User.manager_id == manager_id)
        )
        return [row[0] for row in result.all()]

    @staticmethod
    async def visible_employee_ids(
        db: AsyncSession,
        actor: User,
    ) -> Optional[list[uuid.UUID]]:
        """Employee ids whose records *actor* may read; ``None`` means all."""
        if policy.is_admin(actor):
            return None
        if actor.role == UserRole.manager:
            team = await UserService.find_team_members(db, actor.id)
            return [actor.id, *team]
        return [actor.id]

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def increment_balance(
        db: AsyncSession,
        user_id: uuid.UUID,
        leave_type: LeaveType,
        delta: Union[Decimal, int, float],
    ) -> None:
        """Atomically add *delta* (may be negative) to one balance column."""
        if leave_type == LeaveType.unpaid:
            raise ValueError("unpaid leave has no tracked balance")
        column = User.balance_column(leave_type)
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values({column: column + Decimal(str(delta))})
        )
        if result.rowcount == 0:
            raise NotFoundException("User", str(user_id))
        logger.info("Balance %s of user %s adjusted by %s", leave_type.value, user_id, delta)

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> LeaveBalanceOut:
        result = await db.execute(
            select(
                User.annual_balance,
                User.sick_balance,
                User.casual_balance,
                User.unpaid_balance,
            ).where(User.id == user_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundException("User", str(user_id))
        return LeaveBalanceOut(annual=row[0], sick=row[1], casual=row[2], unpaid=row[3])

    # ─────────────────────────────────────────────────────────────────
    # Profiles
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def list_users(
        db: AsyncSession,
        actor: User,
        *,
        department: Optional[str] = None,
        role: Optional[UserRole] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> PaginatedResponse[UserOut]:
        """Active users visible to *actor*: a manager's team, or everyone for admins."""
        query = select(User).where(User.is_active.is_(True)).order_by(User.name)
        if actor.role == UserRole.manager:
            query = query.where(User.manager_id == actor.id)
        elif not policy.is_admin(actor):
            query = query.where(User.id == actor.id)

        query = apply_filters(query, User, {"department": department, "role": role})
        query = apply_search(query, User, search, ["name", "email", "department"])

        result = await paginate(
            db, query, page=page, limit=limit, options=[selectinload(User.manager)],
        )
        return PaginatedResponse[UserOut](
            data=[UserService.build_user_response(u) for u in result.data],
            meta=result.meta,
        )

    @staticmethod
    async def list_managers(db: AsyncSession) -> list[UserBrief]:
        result = await db.execute(
            select(User)
            .where(User.role == UserRole.manager, User.is_active.is_(True))
            .order_by(User.name)
        )
        return [UserBrief.model_validate(u) for u in result.scalars().all()]

    @staticmethod
    async def get_user(
        db: AsyncSession,
        actor: User,
        user_id: uuid.UUID,
    ) -> UserDetailOut:
        """Profile with per-status leave summary; 404 before 403."""
        from leavedesk.leave.models import LeaveRequest

        user = await UserService.find_user(db, user_id)
        if not policy.can_view_employee(actor, user):
            raise ForbiddenException("Access denied.")

        result = await db.execute(
            select(
                LeaveRequest.status,
                func.count(),
                func.coalesce(func.sum(LeaveRequest.total_days), 0),
            )
            .where(LeaveRequest.employee_id == user.id)
            .group_by(LeaveRequest.status)
        )
        summary = {status: LeaveSummaryItem() for status in LeaveStatus}
        for status, count, days in result.all():
            summary[LeaveStatus(status)] = LeaveSummaryItem(
                count=count, days=Decimal(str(days)),
            )

        out = UserDetailOut.model_validate(user)
        out.leave_summary = summary
        return out

    @staticmethod
    async def update_user(
        db: AsyncSession,
        actor: User,
        user_id: uuid.UUID,
        data: UserUpdate,
    ) -> UserOut:
        """Update profile fields; only admins may change the manager."""
        user = await UserService.find_user(db, user_id)
        if not policy.can_edit_user(actor, user):
            raise ForbiddenException("Not authorized to update this user.")

        changes = data.model_dump(exclude_unset=True)
        manager_changed = "manager_id" in changes
        if manager_changed and not policy.is_admin(actor):
            raise ForbiddenException("Only admins can change a user's manager.")
        changes.pop("manager_id", None)

        old_values = {field: getattr(user, field) for field in changes}
        for field, value in changes.items():
            if value is None:
                raise ValidationException({field: ["This field cannot be empty."]})
            setattr(user, field, value)

        if manager_changed:
            old_values["manager_id"] = str(user.manager_id) if user.manager_id else None
            manager = await UserService.validate_manager(db, user, data.manager_id)
            user.manager = manager
            user.manager_id = manager.id if manager else None
            changes["manager_id"] = str(user.manager_id) if user.manager_id else None

        user.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values=changes,
        )
        logger.info("User %s updated by %s", user.id, actor.id)
        return UserService.build_user_response(user)
