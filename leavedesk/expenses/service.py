"""Reimbursement service layer — claim submission and approval workflow."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.auth import policy
from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import (
    DEFAULT_APPROVAL_COMMENT,
    MIN_REVIEW_COMMENT_LENGTH,
    ClaimStatus,
    UserRole,
)
from leavedesk.common.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.filters import apply_filters
from leavedesk.common.pagination import PaginatedResponse, paginate
from leavedesk.expenses.models import ReimbursementClaim
from leavedesk.expenses.schemas import ClaimCreate, ClaimFilters, ClaimOut
from leavedesk.users.models import User
from leavedesk.users.service import UserService

logger = logging.getLogger(__name__)


def _load_options() -> list:
    return [
        selectinload(ReimbursementClaim.employee),
        selectinload(ReimbursementClaim.reviewer),
    ]


class ExpenseService:
    """Business logic for reimbursement claims."""

    @staticmethod
    def build_claim_response(claim: ReimbursementClaim) -> ClaimOut:
        return ClaimOut.model_validate(claim)

    @staticmethod
    async def _load_claim(
        db: AsyncSession,
        claim_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> ReimbursementClaim:
        query = (
            select(ReimbursementClaim)
            .where(ReimbursementClaim.id == claim_id)
            .options(*_load_options())
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        claim = (await db.execute(query)).scalars().first()
        if claim is None:
            raise NotFoundException("ReimbursementClaim", str(claim_id))
        return claim

    # ── Create ────────────────────────────────────────────────────────

    @staticmethod
    async def apply_claim(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: ClaimCreate,
        receipt_url: Optional[str],
    ) -> ClaimOut:
        """Submit a claim; a stored receipt is mandatory."""
        if not receipt_url:
            raise ValidationException({"receipt": ["Receipt is required."]})
        if data.amount <= 0:
            raise ValidationException({"amount": ["Amount must be greater than zero."]})

        employee = await UserService.find_user(db, employee_id, active_only=True)

        claim = ReimbursementClaim(
            employee=employee,
            type=data.type,
            amount=data.amount,
            description=data.description,
            receipt_url=receipt_url,
            expense_date=data.expense_date,
            status=ClaimStatus.pending,
            reviewer=None,
            review_comment="",
        )
        db.add(claim)
        await db.flush()

        await create_audit_entry(
            db,
            action="apply",
            entity_type="reimbursement_claim",
            entity_id=claim.id,
            actor_id=employee_id,
            new_values={
                "type": data.type.value,
                "amount": str(data.amount),
                "status": ClaimStatus.pending.value,
            },
        )
        logger.info("Claim %s submitted by %s", claim.id, employee_id)
        return ExpenseService.build_claim_response(claim)

    # ── Read ──────────────────────────────────────────────────────────

    @staticmethod
    async def get_claim(
        db: AsyncSession,
        requester: User,
        claim_id: uuid.UUID,
    ) -> ClaimOut:
        claim = await ExpenseService._load_claim(db, claim_id)
        if not policy.can_view_employee(requester, claim.employee):
            raise ForbiddenException("Access denied.")
        return ExpenseService.build_claim_response(claim)

    @staticmethod
    async def list_claims(
        db: AsyncSession,
        requester: User,
        filters: Optional[ClaimFilters] = None,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> PaginatedResponse[ClaimOut]:
        """Role-scoped claims, newest first."""
        filters = filters or ClaimFilters()
        query = select(ReimbursementClaim).order_by(
            ReimbursementClaim.created_at.desc(), ReimbursementClaim.id,
        )

        scope = await UserService.visible_employee_ids(db, requester)
        if scope is not None:
            query = query.where(ReimbursementClaim.employee_id.in_(scope))

        employee_id = filters.employee_id if requester.role != UserRole.employee else None
        query = apply_filters(query, ReimbursementClaim, {
            "status": filters.status,
            "type": filters.type,
            "employee_id": employee_id,
        })

        result = await paginate(db, query, page=page, limit=limit, options=_load_options())
        return PaginatedResponse[ClaimOut](
            data=[ExpenseService.build_claim_response(c) for c in result.data],
            meta=result.meta,
        )

    # ── Review ────────────────────────────────────────────────────────

    @staticmethod
    async def _review(
        db: AsyncSession,
        claim_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        *,
        new_status: ClaimStatus,
        comment: str,
    ) -> ClaimOut:
        action = "approve" if new_status == ClaimStatus.approved else "reject"

        claim = await ExpenseService._load_claim(db, claim_id, for_update=True)
        reviewer = await UserService.find_user(db, reviewer_id)

        if claim.status != ClaimStatus.pending:
            raise InvalidTransitionException("claim", claim.status.value, action)
        if not policy.can_review(reviewer, claim.employee):
            raise ForbiddenException(f"You can only {action} claims of your team members.")

        now = datetime.now(timezone.utc)
        claim.status = new_status
        claim.reviewer = reviewer
        claim.reviewed_by = reviewer.id
        claim.review_comment = comment
        claim.reviewed_at = now
        claim.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action=action,
            entity_type="reimbursement_claim",
            entity_id=claim.id,
            actor_id=reviewer.id,
            old_values={"status": ClaimStatus.pending.value},
            new_values={"status": new_status.value},
        )
        logger.info("Claim %s %s by %s", claim.id, new_status.value, reviewer.id)
        return ExpenseService.build_claim_response(claim)

    @staticmethod
    async def approve_claim(
        db: AsyncSession,
        claim_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        *,
        review_comment: Optional[str] = None,
    ) -> ClaimOut:
        comment = (review_comment or "").strip() or DEFAULT_APPROVAL_COMMENT
        return await ExpenseService._review(
            db, claim_id, reviewer_id, new_status=ClaimStatus.approved, comment=comment,
        )

    @staticmethod
    async def reject_claim(
        db: AsyncSession,
        claim_id: uuid.UUID,
        reviewer_id: uuid.UUID,
        review_comment: Optional[str],
    ) -> ClaimOut:
        comment = (review_comment or "").strip()
        if len(comment) < MIN_REVIEW_COMMENT_LENGTH:
            raise ValidationException(
                {"review_comment": [
                    f"Please provide a rejection reason (min {MIN_REVIEW_COMMENT_LENGTH} characters)."
                ]}
            )
        return await ExpenseService._review(
            db, claim_id, reviewer_id, new_status=ClaimStatus.rejected, comment=comment,
        )
