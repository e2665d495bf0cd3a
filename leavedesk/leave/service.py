"""Leave service layer — application checks, review workflow, balance moves.

Business logic:
  - Apply: past-date guard, inclusive day count (half day = 0.5),
    overlap check against pending/approved requests, balance check
  - Approve / reject / cancel state machine; terminal states are final
  - Balance deducted on approval and restored when an approved leave is
    cancelled, always as an atomic increment; unpaid leave is never tracked
  - Role-scoped listing and single-record access (404 before 403)

Pending requests reserve nothing: two pending requests may both pass the
balance check and both be approved. Approval does not re-check balance.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.auth import policy
from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import (
    BALANCE_TRACKED_TYPES,
    DEFAULT_APPROVAL_COMMENT,
    MIN_REVIEW_COMMENT_LENGTH,
    LeaveStatus,
    UserRole,
)
from leavedesk.common.exceptions import (
    ForbiddenException,
    InsufficientBalanceException,
    InvalidTransitionException,
    NotFoundException,
    OverlappingRequestException,
    ValidationException,
)
from leavedesk.common.filters import apply_filters
from leavedesk.common.pagination import PaginatedResponse, paginate
from leavedesk.config import settings
from leavedesk.leave.models import LeaveRequest
from leavedesk.leave.schemas import LeaveFilters, LeaveRequestCreate, LeaveRequestOut
from leavedesk.users.models import User
from leavedesk.users.schemas import LeaveBalanceOut
from leavedesk.users.service import UserService

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)


def _today() -> date:
    """Current calendar day in the configured timezone."""
    from zoneinfo import ZoneInfo

    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def _load_options() -> list:
    return [selectinload(LeaveRequest.employee), selectinload(LeaveRequest.reviewer)]


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: apply, review, cancel, listing, balances."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def calculate_total_days(start_date: date, end_date: date, is_half_day: bool) -> Decimal:
        """Inclusive calendar-day count; a half day is always 0.5."""
        if is_half_day:
            return Decimal("0.5")
        return Decimal(abs((end_date - start_date).days) + 1)

    @staticmethod
    def build_leave_response(req: LeaveRequest) -> LeaveRequestOut:
        return LeaveRequestOut.model_validate(req)

    @staticmethod
    async def _load_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> LeaveRequest:
        """Load a request with employee + reviewer, optionally row-locked."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(*_load_options())
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        leave_req = (await db.execute(query)).scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    async def _find_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
    ) -> Optional[LeaveRequest]:
        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(ACTIVE_STATUSES),
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
            .order_by(LeaveRequest.start_date)
            .limit(1)
        )
        return result.scalars().first()

    # ─────────────────────────────────────────────────────────────────
    # Apply
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Create a pending leave request after date, overlap and balance checks."""
        employee = await UserService.find_user(db, employee_id, active_only=True)

        if data.end_date < data.start_date:
            raise ValidationException(
                {"end_date": ["End date must be on or after start date."]}
            )
        if data.start_date < _today():
            raise ValidationException(
                {"start_date": ["Leave start date cannot be in the past."]}
            )

        total_days = LeaveService.calculate_total_days(
            data.start_date, data.end_date, data.is_half_day,
        )

        # ── Overlap with pending / approved requests ────────────────
        existing = await LeaveService._find_overlap(
            db, employee_id, data.start_date, data.end_date,
        )
        if existing is not None:
            raise OverlappingRequestException(
                existing.status.value, existing.start_date, existing.end_date,
            )

        # ── Balance (unpaid leave is never checked) ─────────────────
        if data.leave_type in BALANCE_TRACKED_TYPES:
            balance = await UserService.get_balance(db, employee_id)
            available = getattr(balance, data.leave_type.value)
            if available < total_days:
                raise InsufficientBalanceException(
                    data.leave_type.value, available, total_days,
                )

        leave_req = LeaveRequest(
            employee=employee,
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            total_days=total_days,
            is_half_day=data.is_half_day,
            half_day_period=data.half_day_period,
            reason=data.reason,
            status=LeaveStatus.pending,
            reviewer=None,
            review_comment="",
            emergency_contact=data.emergency_contact,
            attachment_url=data.attachment_url,
        )
        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action="apply",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=employee_id,
            new_values={
                "leave_type": data.leave_type.value,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "total_days": str(total_days),
                "status": LeaveStatus.pending.value,
            },
        )
        logger.info(
            "Leave %s applied by %s (%s, %s days)",
            leave_req.id, employee_id, data.leave_type.value, total_days,
        )
        return LeaveService.build_leave_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Approve
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        *,
        review_comment: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Approve a pending request and deduct the employee's balance."""
        comment = (review_comment or "").strip() or DEFAULT_APPROVAL_COMMENT

        leave_req = await LeaveService._load_request(db, request_id, for_update=True)
        reviewer = await UserService.find_user(db, reviewer_id)

        if leave_req.status != LeaveStatus.pending:
            raise InvalidTransitionException("leave", leave_req.status.value, "approve")
        if not policy.can_review(reviewer, leave_req.employee):
            raise ForbiddenException("You can only approve leaves of your team members.")

        now = datetime.now(timezone.utc)
        leave_req.status = LeaveStatus.approved
        leave_req.reviewer = reviewer
        leave_req.reviewed_by = reviewer.id
        leave_req.review_comment = comment
        leave_req.reviewed_at = now
        leave_req.updated_at = now

        if leave_req.leave_type in BALANCE_TRACKED_TYPES:
            await UserService.increment_balance(
                db, leave_req.employee_id, leave_req.leave_type, -leave_req.total_days,
            )

        await db.flush()

        await create_audit_entry(
            db,
            action="approve",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=reviewer.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.approved.value},
        )
        logger.info("Leave %s approved by %s", leave_req.id, reviewer.id)
        return LeaveService.build_leave_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        review_comment: Optional[str],
    ) -> LeaveRequestOut:
        """Reject a pending request; a reason of at least 5 characters is required."""
        comment = (review_comment or "").strip()
        if len(comment) < MIN_REVIEW_COMMENT_LENGTH:
            raise ValidationException(
                {"review_comment": [
                    f"Please provide a rejection reason (min {MIN_REVIEW_COMMENT_LENGTH} characters)."
                ]}
            )

        leave_req = await LeaveService._load_request(db, request_id, for_update=True)
        reviewer = await UserService.find_user(db, reviewer_id)

        if leave_req.status != LeaveStatus.pending:
            raise InvalidTransitionException("leave", leave_req.status.value, "reject")
        if not policy.can_review(reviewer, leave_req.employee):
            raise ForbiddenException("You can only reject leaves of your team members.")

        now = datetime.now(timezone.utc)
        leave_req.status = LeaveStatus.rejected
        leave_req.reviewer = reviewer
        leave_req.reviewed_by = reviewer.id
        leave_req.review_comment = comment
        leave_req.reviewed_at = now
        leave_req.updated_at = now

        await db.flush()

        await create_audit_entry(
            db,
            action="reject",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=reviewer.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.rejected.value},
        )
        logger.info("Leave %s rejected by %s", leave_req.id, reviewer.id)
        return LeaveService.build_leave_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Cancel a pending or approved request; restores balance if it was approved."""
        leave_req = await LeaveService._load_request(db, request_id, for_update=True)
        actor = await UserService.find_user(db, actor_id)

        if not policy.can_cancel_leave(actor, leave_req.employee_id):
            raise ForbiddenException("Not authorized to cancel this leave.")
        if leave_req.status not in ACTIVE_STATUSES:
            raise InvalidTransitionException("leave", leave_req.status.value, "cancel")

        old_status = leave_req.status
        now = datetime.now(timezone.utc)
        leave_req.status = LeaveStatus.cancelled
        leave_req.cancelled_by = actor.id
        leave_req.cancelled_at = now
        # Reviewer fields only describe approved / rejected requests
        leave_req.reviewer = None
        leave_req.reviewed_by = None
        leave_req.reviewed_at = None
        leave_req.updated_at = now

        if old_status == LeaveStatus.approved and leave_req.leave_type in BALANCE_TRACKED_TYPES:
            await UserService.increment_balance(
                db, leave_req.employee_id, leave_req.leave_type, leave_req.total_days,
            )

        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.id,
            old_values={"status": old_status.value},
            new_values={"status": LeaveStatus.cancelled.value},
        )
        logger.info("Leave %s cancelled by %s (was %s)", leave_req.id, actor.id, old_status.value)
        return LeaveService.build_leave_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Read path
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave(
        db: AsyncSession,
        requester: User,
        request_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Single request; NotFound if absent, Forbidden if outside scope."""
        leave_req = await LeaveService._load_request(db, request_id)
        if not policy.can_view_employee(requester, leave_req.employee):
            raise ForbiddenException("Access denied.")
        return LeaveService.build_leave_response(leave_req)

    @staticmethod
    async def get_leave_requests(
        db: AsyncSession,
        requester: User,
        filters: Optional[LeaveFilters] = None,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> PaginatedResponse[LeaveRequestOut]:
        """Role-scoped, filtered, newest-first page of leave requests.

        ``employee_id`` is ignored for employees and can only narrow a
        manager's team scope, never widen it.
        """
        filters = filters or LeaveFilters()
        query = select(LeaveRequest).order_by(
            LeaveRequest.created_at.desc(), LeaveRequest.id,
        )

        scope = await UserService.visible_employee_ids(db, requester)
        if scope is not None:
            query = query.where(LeaveRequest.employee_id.in_(scope))

        employee_id = filters.employee_id if requester.role != UserRole.employee else None
        query = apply_filters(query, LeaveRequest, {
            "status": filters.status,
            "leave_type": filters.leave_type,
            "employee_id": employee_id,
            "start_date__from": filters.start_date_from,
            "start_date__to": filters.start_date_to,
        })
        if filters.department:
            query = query.join(User, LeaveRequest.employee_id == User.id).where(
                User.department == filters.department,
            )

        result = await paginate(db, query, page=page, limit=limit, options=_load_options())
        return PaginatedResponse[LeaveRequestOut](
            data=[LeaveService.build_leave_response(r) for r in result.data],
            meta=result.meta,
        )

    @staticmethod
    async def get_pending_approvals(
        db: AsyncSession,
        reviewer: User,
    ) -> list[LeaveRequestOut]:
        """Pending requests the reviewer may act on, oldest first."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.status == LeaveStatus.pending)
            .options(*_load_options())
            .order_by(LeaveRequest.created_at.asc())
        )
        if not policy.is_admin(reviewer):
            team = await UserService.find_team_members(db, reviewer.id)
            if not team:
                return []
            query = query.where(LeaveRequest.employee_id.in_(team))

        result = await db.execute(query)
        return [LeaveService.build_leave_response(r) for r in result.scalars().all()]

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> LeaveBalanceOut:
        return await UserService.get_balance(db, employee_id)
