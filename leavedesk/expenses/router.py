"""Reimbursement router — submit with receipt, list, stats, review."""


import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import ValidationError
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import ClaimStatus, ExpenseType, UserRole
from leavedesk.common.pagination import PaginatedResponse, PaginationParams
from leavedesk.common.storage import delete_receipt, save_receipt
from leavedesk.dashboard.schemas import ClaimStatsOut
from leavedesk.dashboard.service import DashboardService
from leavedesk.database import get_db
from leavedesk.expenses.schemas import (
    ClaimApproveRequest,
    ClaimCreate,
    ClaimFilters,
    ClaimOut,
    ClaimRejectRequest,
)
from leavedesk.expenses.service import ExpenseService
from leavedesk.users.models import User

router = APIRouter(prefix="", tags=["reimbursements"])

_reviewer_dep = require_role(UserRole.manager, UserRole.admin)


# ── POST / ──────────────────────────────────────────────────────────

@router.post("/", response_model=ClaimOut, status_code=201)
async def apply_claim(
    type: ExpenseType = Form(...),
    amount: Decimal = Form(...),
    description: str = Form(...),
    expense_date: date = Form(...),
    receipt: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a claim as multipart form data with a ``receipt`` file."""
    try:
        data = ClaimCreate(
            type=type, amount=amount, description=description, expense_date=expense_date,
        )
    except ValidationError as exc:
        raise RequestValidationError(
            [{**err, "loc": ("body", *err["loc"])} for err in exc.errors()]
        )

    receipt_url = await save_receipt(receipt) if receipt is not None else None
    try:
        claim = await ExpenseService.apply_claim(db, user.id, data, receipt_url)
        # commit here so a failed write still reaches the cleanup below
        await db.commit()
    except Exception:
        if receipt_url is not None:
            delete_receipt(receipt_url)
        raise
    return claim


# ── GET / ───────────────────────────────────────────────────────────

@router.get("/", response_model=PaginatedResponse[ClaimOut])
async def list_claims(
    status: Optional[ClaimStatus] = Query(None),
    type: Optional[ExpenseType] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    filters = ClaimFilters(status=status, type=type, employee_id=employee_id)
    return await ExpenseService.list_claims(
        db, user, filters, page=pagination.page, limit=pagination.limit,
    )


# ── GET /stats ──────────────────────────────────────────────────────

@router.get("/stats", response_model=ClaimStatsOut)
async def claim_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService.get_claim_stats(db, user)


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{claim_id}", response_model=ClaimOut)
async def get_claim(
    claim_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ExpenseService.get_claim(db, user, claim_id)


# ── PUT /{id}/approve ───────────────────────────────────────────────

@router.put("/{claim_id}/approve", response_model=ClaimOut)
async def approve_claim(
    claim_id: uuid.UUID,
    body: Optional[ClaimApproveRequest] = None,
    user: User = Depends(_reviewer_dep),
    db: AsyncSession = Depends(get_db),
):
    return await ExpenseService.approve_claim(
        db, claim_id, user.id,
        review_comment=body.review_comment if body else None,
    )


# ── PUT /{id}/reject ────────────────────────────────────────────────

@router.put("/{claim_id}/reject", response_model=ClaimOut)
async def reject_claim(
    claim_id: uuid.UUID,
    body: ClaimRejectRequest,
    user: User = Depends(_reviewer_dep),
    db: AsyncSession = Depends(get_db),
):
    return await ExpenseService.reject_claim(db, claim_id, user.id, body.review_comment)
