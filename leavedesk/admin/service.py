"""Admin service — user management, role changes, balance adjustments."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import BALANCE_TRACKED_TYPES, UserRole
from leavedesk.common.exceptions import ValidationException
from leavedesk.common.filters import apply_filters, apply_search
from leavedesk.common.pagination import PaginatedResponse, paginate
from leavedesk.expenses.models import ReimbursementClaim
from leavedesk.leave.models import LeaveRequest
from leavedesk.users.models import User
from leavedesk.users.schemas import BalanceAdjustRequest, UserOut
from leavedesk.users.service import UserService

logger = logging.getLogger(__name__)


def _reject_self(actor: User, user_id: uuid.UUID, message: str) -> None:
    if actor.id == user_id:
        raise ValidationException({"id": [message]})


class AdminService:
    """Static service class for admin operations."""

    # ── Users ───────────────────────────────────────────────────────

    @staticmethod
    async def list_all_users(
        db: AsyncSession,
        *,
        role: Optional[UserRole] = None,
        department: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> PaginatedResponse[UserOut]:
        """Every user, active or not, newest first."""
        query = select(User).order_by(User.created_at.desc(), User.id)
        query = apply_filters(query, User, {
            "role": role,
            "department": department,
            "is_active": is_active,
        })
        query = apply_search(query, User, search, ["name", "email", "department"])

        result = await paginate(
            db, query, page=page, limit=limit, options=[selectinload(User.manager)],
        )
        return PaginatedResponse[UserOut](
            data=[UserService.build_user_response(u) for u in result.data],
            meta=result.meta,
        )

    # ── Role / status / manager ─────────────────────────────────────

    @staticmethod
    async def change_role(
        db: AsyncSession, actor: User, user_id: uuid.UUID, role: UserRole,
    ) -> UserOut:
        _reject_self(actor, user_id, "You cannot change your own role.")
        user = await UserService.find_user(db, user_id)

        old_role = user.role
        detached = 0
        if old_role == UserRole.manager and role != UserRole.manager:
            # Reports of a demoted manager would point at a non-manager
            result = await db.execute(
                update(User).where(User.manager_id == user.id).values(manager_id=None)
            )
            detached = result.rowcount

        user.role = role
        user.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="change_role",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor.id,
            old_values={"role": old_role.value},
            new_values={"role": role.value, "detached_reports": detached},
        )
        logger.info("Role of %s changed %s -> %s by %s", user.id, old_role.value, role.value, actor.id)
        return UserService.build_user_response(user)

    @staticmethod
    async def toggle_user_status(
        db: AsyncSession, actor: User, user_id: uuid.UUID,
    ) -> UserOut:
        _reject_self(actor, user_id, "You cannot deactivate your own account.")
        user = await UserService.find_user(db, user_id)

        user.is_active = not user.is_active
        user.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="activate" if user.is_active else "deactivate",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor.id,
            old_values={"is_active": not user.is_active},
            new_values={"is_active": user.is_active},
        )
        logger.info("User %s is_active=%s (by %s)", user.id, user.is_active, actor.id)
        return UserService.build_user_response(user)

    @staticmethod
    async def assign_manager(
        db: AsyncSession,
        actor: User,
        user_id: uuid.UUID,
        manager_id: Optional[uuid.UUID],
    ) -> UserOut:
        """Set (or clear, with ``None``) the manager of *user_id*."""
        user = await UserService.find_user(db, user_id)
        manager = await UserService.validate_manager(db, user, manager_id)

        old_manager_id = user.manager_id
        user.manager = manager
        user.manager_id = manager.id if manager else None
        user.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="assign_manager",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor.id,
            old_values={"manager_id": str(old_manager_id) if old_manager_id else None},
            new_values={"manager_id": str(user.manager_id) if user.manager_id else None},
        )
        return UserService.build_user_response(user)

    # ── Balances ────────────────────────────────────────────────────

    @staticmethod
    async def adjust_leave_balance(
        db: AsyncSession,
        actor: User,
        user_id: uuid.UUID,
        data: BalanceAdjustRequest,
    ) -> UserOut:
        """Overwrite the given balances; negative values are clamped to zero."""
        values = {
            lt.value: max(Decimal("0"), getattr(data, lt.value))
            for lt in BALANCE_TRACKED_TYPES
            if getattr(data, lt.value) is not None
        }
        if not values:
            raise ValidationException({"balance": ["No balance values provided."]})

        user = await UserService.find_user(db, user_id)
        old_values = {k: str(getattr(user, f"{k}_balance")) for k in values}
        for key, value in values.items():
            setattr(user, f"{key}_balance", value)
        user.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="adjust_balance",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor.id,
            old_values=old_values,
            new_values={k: str(v) for k, v in values.items()},
        )
        logger.info("Balances of %s set to %s by %s", user.id, values, actor.id)
        return UserService.build_user_response(user)

    # ── Delete ──────────────────────────────────────────────────────

    @staticmethod
    async def delete_user(db: AsyncSession, actor: User, user_id: uuid.UUID) -> str:
        """Remove a user with their leave requests and claims. Returns the name."""
        _reject_self(actor, user_id, "You cannot delete your own account.")
        user = await UserService.find_user(db, user_id)
        name, email = user.name, user.email

        leaves = await db.execute(
            delete(LeaveRequest).where(LeaveRequest.employee_id == user.id)
        )
        claims = await db.execute(
            delete(ReimbursementClaim).where(ReimbursementClaim.employee_id == user.id)
        )
        await db.execute(
            update(User).where(User.manager_id == user.id).values(manager_id=None)
        )
        await db.delete(user)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="user",
            entity_id=user_id,
            actor_id=actor.id,
            old_values={
                "email": email,
                "leave_requests": leaves.rowcount,
                "claims": claims.rowcount,
            },
        )
        logger.warning("User %s deleted by %s", user_id, actor.id)
        return name
