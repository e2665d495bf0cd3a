"""Leave ledger tests — application checks, review workflow, balance moves,
role scoping, and the HTTP endpoints.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import HalfDayPeriod, LeaveStatus, LeaveType, UserRole
from leavedesk.common.exceptions import (
    ForbiddenException,
    InsufficientBalanceException,
    InvalidTransitionException,
    NotFoundException,
    OverlappingRequestException,
    ValidationException,
)
from leavedesk.leave.schemas import LeaveFilters, LeaveRequestCreate
from leavedesk.leave.service import LeaveService
from tests.conftest import TODAY, auth_headers, seed_leave, seed_team, seed_user


def _request(
    start_offset: int = 5,
    end_offset: int = 7,
    *,
    leave_type: LeaveType = LeaveType.annual,
    is_half_day: bool = False,
    half_day_period: HalfDayPeriod | None = None,
) -> LeaveRequestCreate:
    return LeaveRequestCreate(
        leave_type=leave_type,
        start_date=TODAY + timedelta(days=start_offset),
        end_date=TODAY + timedelta(days=end_offset),
        reason="Family trip planned months ago",
        is_half_day=is_half_day,
        half_day_period=half_day_period,
    )


# ═════════════════════════════════════════════════════════════════════
# 1. Day counting and payload normalisation — no DB
# ═════════════════════════════════════════════════════════════════════


class TestTotalDays:

    def test_inclusive_range(self):
        start = TODAY + timedelta(days=5)
        assert LeaveService.calculate_total_days(start, start + timedelta(days=2), False) == 3

    def test_same_day_is_one(self):
        assert LeaveService.calculate_total_days(TODAY, TODAY, False) == 1

    def test_half_day_is_half(self):
        assert LeaveService.calculate_total_days(TODAY, TODAY, True) == Decimal("0.5")

    def test_half_day_forces_single_date(self):
        data = _request(5, 9, is_half_day=True, half_day_period=HalfDayPeriod.morning)
        assert data.end_date == data.start_date
        assert data.half_day_period == HalfDayPeriod.morning

    def test_period_dropped_for_full_days(self):
        data = _request(5, 6, half_day_period=HalfDayPeriod.afternoon)
        assert data.half_day_period is None

    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            _request(7, 5)

    def test_reason_too_short_rejected(self):
        with pytest.raises(ValidationError):
            LeaveRequestCreate(
                leave_type=LeaveType.sick,
                start_date=TODAY,
                end_date=TODAY,
                reason="flu",
            )


# ═════════════════════════════════════════════════════════════════════
# 2. Apply
# ═════════════════════════════════════════════════════════════════════


class TestApplyLeave:

    async def test_apply_creates_pending_request(self, db: AsyncSession):
        _, _, employee, _ = await seed_team(db)

        result = await LeaveService.apply_leave(db, employee.id, _request(5, 7))

        assert result.status == LeaveStatus.pending
        assert result.total_days == Decimal("3")
        assert result.employee_id == employee.id
        assert result.reviewed_by is None

        # Nothing is reserved at apply time
        await db.refresh(employee)
        assert employee.annual_balance == Decimal("20")

    async def test_insufficient_balance_names_values(self, db: AsyncSession):
        employee = await seed_user(db, sick=Decimal("2"))

        with pytest.raises(InsufficientBalanceException) as exc_info:
            await LeaveService.apply_leave(
                db, employee.id, _request(1, 5, leave_type=LeaveType.sick),
            )
        assert "Available: 2 day(s), Requested: 5 day(s)" in exc_info.value.detail
        assert exc_info.value.status_code == 422

    async def test_exact_balance_is_enough(self, db: AsyncSession):
        employee = await seed_user(db, casual=Decimal("3"))

        result = await LeaveService.apply_leave(
            db, employee.id, _request(1, 3, leave_type=LeaveType.casual),
        )
        assert result.total_days == Decimal("3")

    async def test_unpaid_leave_skips_balance_check(self, db: AsyncSession):
        employee = await seed_user(db, annual=Decimal("0"), sick=Decimal("0"), casual=Decimal("0"))

        result = await LeaveService.apply_leave(
            db, employee.id, _request(1, 30, leave_type=LeaveType.unpaid),
        )
        assert result.total_days == Decimal("30")

    async def test_overlap_with_pending_names_existing_range(self, db: AsyncSession):
        employee = await seed_user(db)
        await LeaveService.apply_leave(db, employee.id, _request(5, 7))

        with pytest.raises(OverlappingRequestException) as exc_info:
            await LeaveService.apply_leave(db, employee.id, _request(7, 9))

        detail = exc_info.value.detail
        assert "pending" in detail
        assert (TODAY + timedelta(days=5)).isoformat() in detail
        assert (TODAY + timedelta(days=7)).isoformat() in detail

    async def test_overlap_with_approved_is_blocked(self, db: AsyncSession):
        employee = await seed_user(db)
        await seed_leave(
            db, employee,
            start_date=TODAY + timedelta(days=10),
            end_date=TODAY + timedelta(days=12),
            status=LeaveStatus.approved,
        )

        with pytest.raises(OverlappingRequestException) as exc_info:
            await LeaveService.apply_leave(db, employee.id, _request(12, 12))
        assert "approved" in exc_info.value.detail

    @pytest.mark.parametrize("status", [LeaveStatus.rejected, LeaveStatus.cancelled])
    async def test_inactive_requests_do_not_block(self, db: AsyncSession, status):
        employee = await seed_user(db)
        await seed_leave(
            db, employee,
            start_date=TODAY + timedelta(days=5),
            end_date=TODAY + timedelta(days=7),
            status=status,
        )

        result = await LeaveService.apply_leave(db, employee.id, _request(5, 7))
        assert result.status == LeaveStatus.pending

    async def test_adjacent_ranges_do_not_overlap(self, db: AsyncSession):
        employee = await seed_user(db)
        await LeaveService.apply_leave(db, employee.id, _request(5, 7))

        result = await LeaveService.apply_leave(db, employee.id, _request(8, 9))
        assert result.total_days == Decimal("2")

    async def test_past_start_date_rejected(self, db: AsyncSession):
        employee = await seed_user(db)

        with pytest.raises(ValidationException) as exc_info:
            await LeaveService.apply_leave(db, employee.id, _request(-1, 1))
        assert "past" in str(exc_info.value.errors).lower()

    async def test_today_is_allowed(self, db: AsyncSession):
        employee = await seed_user(db)

        result = await LeaveService.apply_leave(db, employee.id, _request(0, 0))
        assert result.total_days == Decimal("1")

    async def test_half_day_counts_half(self, db: AsyncSession):
        employee = await seed_user(db)

        result = await LeaveService.apply_leave(
            db, employee.id,
            _request(2, 2, is_half_day=True, half_day_period=HalfDayPeriod.afternoon),
        )
        assert result.total_days == Decimal("0.5")
        assert result.end_date == result.start_date

    async def test_unknown_employee_not_found(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await LeaveService.apply_leave(db, uuid.uuid4(), _request())

    async def test_inactive_employee_not_found(self, db: AsyncSession):
        employee = await seed_user(db, is_active=False)

        with pytest.raises(NotFoundException):
            await LeaveService.apply_leave(db, employee.id, _request())

    async def test_pending_requests_do_not_reserve_balance(self, db: AsyncSession):
        """Two pending requests may together exceed the balance."""
        employee = await seed_user(db, casual=Decimal("3"))

        await LeaveService.apply_leave(db, employee.id, _request(1, 3, leave_type=LeaveType.casual))
        second = await LeaveService.apply_leave(
            db, employee.id, _request(10, 12, leave_type=LeaveType.casual),
        )
        assert second.status == LeaveStatus.pending


# ═════════════════════════════════════════════════════════════════════
# 3. Approve / reject / cancel
# ═════════════════════════════════════════════════════════════════════


class TestApprovalWorkflow:

    async def test_manager_approves_and_balance_drops(self, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        applied = await LeaveService.apply_leave(db, employee.id, _request(5, 7))

        result = await LeaveService.approve_leave(db, applied.id, manager.id)

        assert result.status == LeaveStatus.approved
        assert result.reviewed_by == manager.id
        assert result.reviewed_at is not None
        assert result.review_comment == "Approved"
        await db.refresh(employee)
        assert employee.annual_balance == Decimal("17")

    async def test_approve_keeps_custom_comment(self, db: AsyncSession):
        admin, _, employee, _ = await seed_team(db)
        applied = await LeaveService.apply_leave(db, employee.id, _request())

        result = await LeaveService.approve_leave(
            db, applied.id, admin.id, review_comment="Enjoy the break",
        )
        assert result.review_comment == "Enjoy the break"

    async def test_approve_unpaid_leaves_balances_alone(self, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        applied = await LeaveService.apply_leave(
            db, employee.id, _request(1, 4, leave_type=LeaveType.unpaid),
        )

        await LeaveService.approve_leave(db, applied.id, manager.id)

        await db.refresh(employee)
        assert employee.unpaid_balance == Decimal("999")
        assert employee.annual_balance == Decimal("20")

    async def test_other_manager_forbidden(self, db: AsyncSession):
        _, _, employee, _ = await seed_team(db)
        stranger = await seed_user(db, role=UserRole.manager)
        applied = await LeaveService.apply_leave(db, employee.id, _request())

        with pytest.raises(ForbiddenException):
            await LeaveService.approve_leave(db, applied.id, stranger.id)

    async def test_manager_cannot_approve_own_leave(self, db: AsyncSession):
        _, manager, _, _ = await seed_team(db)
        applied = await LeaveService.apply_leave(db, manager.id, _request())

        with pytest.raises(ForbiddenException):
            await LeaveService.approve_leave(db, applied.id, manager.id)

    async def test_approve_missing_request_not_found(self, db: AsyncSession):
        admin, _, _, _ = await seed_team(db)

        with pytest.raises(NotFoundException):
            await LeaveService.approve_leave(db, uuid.uuid4(), admin.id)

    async def test_approving_twice_is_invalid_and_deducts_once(self, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        applied = await LeaveService.apply_leave(db, employee.id, _request(5, 7))
        await LeaveService.approve_leave(db, applied.id, manager.id)

        with pytest.raises(InvalidTransitionException) as exc_info:
            await LeaveService.approve_leave(db, applied.id, manager.id)
        assert "approved" in exc_info.value.detail

        await db.refresh(employee)
        assert employee.annual_balance == Decimal("17")

    async def test_reject_requires_comment(self, db: AsyncSession):
        admin, _, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee)

        with pytest.raises(ValidationException):
            await LeaveService.reject_leave(db, leave.id, admin.id, "  no  ")

        await db.refresh(leave)
        assert leave.status == LeaveStatus.pending
        assert leave.reviewed_by is None
        assert leave.review_comment == ""

    async def test_reject_sets_review_fields(self, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee)

        result = await LeaveService.reject_leave(
            db, leave.id, manager.id, "Team is short-staffed that week",
        )

        assert result.status == LeaveStatus.rejected
        assert result.reviewed_by == manager.id
        assert result.review_comment == "Team is short-staffed that week"
        await db.refresh(employee)
        assert employee.annual_balance == Decimal("20")

    async def test_cannot_approve_rejected(self, db: AsyncSession):
        admin, _, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee, status=LeaveStatus.rejected)

        with pytest.raises(InvalidTransitionException):
            await LeaveService.approve_leave(db, leave.id, admin.id)

    async def test_cancel_approved_restores_balance(self, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        applied = await LeaveService.apply_leave(db, employee.id, _request(5, 7))
        await LeaveService.approve_leave(db, applied.id, manager.id)
        await db.refresh(employee)
        assert employee.annual_balance == Decimal("17")

        result = await LeaveService.cancel_leave(db, applied.id, employee.id)

        assert result.status == LeaveStatus.cancelled
        assert result.cancelled_by == employee.id
        assert result.reviewed_by is None
        assert result.reviewed_at is None
        await db.refresh(employee)
        assert employee.annual_balance == Decimal("20")

    async def test_cancel_pending_leaves_balance(self, db: AsyncSession):
        employee = await seed_user(db)
        applied = await LeaveService.apply_leave(db, employee.id, _request())

        await LeaveService.cancel_leave(db, applied.id, employee.id)

        await db.refresh(employee)
        assert employee.annual_balance == Decimal("20")

    async def test_admin_can_cancel(self, db: AsyncSession):
        admin, _, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee)

        result = await LeaveService.cancel_leave(db, leave.id, admin.id)
        assert result.status == LeaveStatus.cancelled

    async def test_manager_cannot_cancel_report_leave(self, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee)

        with pytest.raises(ForbiddenException):
            await LeaveService.cancel_leave(db, leave.id, manager.id)

    async def test_cancel_twice_is_invalid(self, db: AsyncSession):
        employee = await seed_user(db)
        leave = await seed_leave(db, employee, status=LeaveStatus.cancelled)

        with pytest.raises(InvalidTransitionException):
            await LeaveService.cancel_leave(db, leave.id, employee.id)

    async def test_cancel_rejected_is_invalid(self, db: AsyncSession):
        employee = await seed_user(db)
        leave = await seed_leave(db, employee, status=LeaveStatus.rejected)

        with pytest.raises(InvalidTransitionException):
            await LeaveService.cancel_leave(db, leave.id, employee.id)

    async def test_cancelled_range_can_be_reapplied(self, db: AsyncSession):
        employee = await seed_user(db)
        applied = await LeaveService.apply_leave(db, employee.id, _request(5, 7))
        await LeaveService.cancel_leave(db, applied.id, employee.id)

        again = await LeaveService.apply_leave(db, employee.id, _request(5, 7))
        assert again.status == LeaveStatus.pending


# ═════════════════════════════════════════════════════════════════════
# 4. Read path scoping
# ═════════════════════════════════════════════════════════════════════


class TestVisibility:

    async def test_get_leave_owner_and_manager(self, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee)

        assert (await LeaveService.get_leave(db, employee, leave.id)).id == leave.id
        assert (await LeaveService.get_leave(db, manager, leave.id)).id == leave.id

    async def test_get_leave_outsider_forbidden(self, db: AsyncSession):
        _, _, employee, outsider = await seed_team(db)
        leave = await seed_leave(db, employee)

        with pytest.raises(ForbiddenException):
            await LeaveService.get_leave(db, outsider, leave.id)

    async def test_get_missing_leave_not_found_even_for_outsider(self, db: AsyncSession):
        _, _, _, outsider = await seed_team(db)

        with pytest.raises(NotFoundException):
            await LeaveService.get_leave(db, outsider, uuid.uuid4())

    async def test_list_scoped_by_role(self, db: AsyncSession):
        admin, manager, employee, outsider = await seed_team(db)
        await seed_leave(db, employee)
        await seed_leave(db, manager)
        await seed_leave(db, outsider)

        everyone = await LeaveService.get_leave_requests(db, admin)
        team = await LeaveService.get_leave_requests(db, manager)
        own = await LeaveService.get_leave_requests(db, employee)

        assert everyone.meta.total == 3
        assert {r.employee_id for r in team.data} == {manager.id, employee.id}
        assert [r.employee_id for r in own.data] == [employee.id]

    async def test_employee_filter_cannot_widen_scope(self, db: AsyncSession):
        _, manager, employee, outsider = await seed_team(db)
        await seed_leave(db, outsider)

        as_employee = await LeaveService.get_leave_requests(
            db, employee, LeaveFilters(employee_id=outsider.id),
        )
        as_manager = await LeaveService.get_leave_requests(
            db, manager, LeaveFilters(employee_id=outsider.id),
        )
        assert as_employee.meta.total == 0
        assert as_manager.meta.total == 0

    async def test_filters_and_pagination(self, db: AsyncSession):
        admin, _, employee, outsider = await seed_team(db)
        for offset in range(3):
            await seed_leave(
                db, employee,
                start_date=TODAY + timedelta(days=10 * offset + 1),
                leave_type=LeaveType.sick,
            )
        await seed_leave(db, outsider, status=LeaveStatus.approved)

        sick = await LeaveService.get_leave_requests(
            db, admin, LeaveFilters(leave_type=LeaveType.sick), page=1, limit=2,
        )
        assert sick.meta.total == 3
        assert len(sick.data) == 2
        assert sick.meta.has_next is True

        by_department = await LeaveService.get_leave_requests(
            db, admin, LeaveFilters(department="Design"),
        )
        assert [r.employee_id for r in by_department.data] == [outsider.id]

    async def test_pending_approvals_for_manager(self, db: AsyncSession):
        admin, manager, employee, outsider = await seed_team(db)
        await seed_leave(db, employee)
        await seed_leave(db, employee, start_date=TODAY + timedelta(days=20),
                         status=LeaveStatus.approved)
        await seed_leave(db, outsider)

        team_pending = await LeaveService.get_pending_approvals(db, manager)
        all_pending = await LeaveService.get_pending_approvals(db, admin)

        assert [r.employee_id for r in team_pending] == [employee.id]
        assert len(all_pending) == 2


# ═════════════════════════════════════════════════════════════════════
# 5. HTTP endpoints
# ═════════════════════════════════════════════════════════════════════


def _payload(start_offset: int = 5, end_offset: int = 7, **extra) -> dict:
    return {
        "leave_type": "annual",
        "start_date": (TODAY + timedelta(days=start_offset)).isoformat(),
        "end_date": (TODAY + timedelta(days=end_offset)).isoformat(),
        "reason": "Family trip planned months ago",
        **extra,
    }


class TestLeaveAPI:

    async def test_requires_authentication(self, client):
        resp = await client.get("/api/v1/leaves/")
        assert resp.status_code == 401

    async def test_apply_approve_cancel_round_trip(self, client, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        await db.commit()

        resp = await client.post(
            "/api/v1/leaves/", json=_payload(), headers=auth_headers(employee),
        )
        assert resp.status_code == 201
        leave_id = resp.json()["id"]
        assert resp.json()["status"] == "pending"
        assert Decimal(resp.json()["total_days"]) == 3

        resp = await client.put(
            f"/api/v1/leaves/{leave_id}/approve", headers=auth_headers(manager),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "approved"

        resp = await client.get("/api/v1/leaves/my-balance", headers=auth_headers(employee))
        assert Decimal(resp.json()["annual"]) == 17

        resp = await client.put(
            f"/api/v1/leaves/{leave_id}/cancel", headers=auth_headers(employee),
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "cancelled"

        resp = await client.get("/api/v1/leaves/my-balance", headers=auth_headers(employee))
        assert Decimal(resp.json()["annual"]) == 20

    async def test_overlap_is_conflict(self, client, db: AsyncSession):
        employee = await seed_user(db)
        await db.commit()
        headers = auth_headers(employee)

        await client.post("/api/v1/leaves/", json=_payload(), headers=headers)
        resp = await client.post("/api/v1/leaves/", json=_payload(6, 6), headers=headers)

        assert resp.status_code == 409
        assert resp.headers["content-type"].startswith("application/problem+json")
        assert resp.json()["type"].endswith("/overlapping-request")

    async def test_insufficient_balance_is_422(self, client, db: AsyncSession):
        employee = await seed_user(db, sick=Decimal("2"))
        await db.commit()

        resp = await client.post(
            "/api/v1/leaves/",
            json=_payload(1, 5, leave_type="sick"),
            headers=auth_headers(employee),
        )
        assert resp.status_code == 422
        assert "Available: 2 day(s), Requested: 5 day(s)" in resp.json()["detail"]

    async def test_invalid_payload_is_422(self, client, db: AsyncSession):
        employee = await seed_user(db)
        await db.commit()

        resp = await client.post(
            "/api/v1/leaves/",
            json=_payload(reason="short"),
            headers=auth_headers(employee),
        )
        assert resp.status_code == 422
        assert "reason" in resp.json()["errors"]

    async def test_employee_cannot_review(self, client, db: AsyncSession):
        _, _, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee)
        await db.commit()

        resp = await client.put(
            f"/api/v1/leaves/{leave.id}/approve", headers=auth_headers(employee),
        )
        assert resp.status_code == 403

    async def test_reject_short_comment_is_422(self, client, db: AsyncSession):
        admin, _, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee)
        await db.commit()

        resp = await client.put(
            f"/api/v1/leaves/{leave.id}/reject",
            json={"review_comment": "no"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 422

        await db.refresh(leave)
        assert leave.status == LeaveStatus.pending

    async def test_review_terminal_request_is_409(self, client, db: AsyncSession):
        """Approved requests stay untouched and no balance moves."""
        admin, _, employee, _ = await seed_team(db)
        leave = await seed_leave(db, employee, status=LeaveStatus.approved)
        employee.annual_balance = Decimal("19")
        await db.commit()

        reject = await client.put(
            f"/api/v1/leaves/{leave.id}/reject",
            json={"review_comment": "Changed my mind"},
            headers=auth_headers(admin),
        )
        approve = await client.put(
            f"/api/v1/leaves/{leave.id}/approve", headers=auth_headers(admin),
        )

        for resp in (reject, approve):
            assert resp.status_code == 409
            assert resp.json()["type"].endswith("/invalid-transition")

        await db.refresh(leave)
        await db.refresh(employee)
        assert leave.status == LeaveStatus.approved
        assert leave.reviewed_by is None
        assert leave.reviewed_at is None
        assert leave.review_comment == ""
        assert employee.annual_balance == Decimal("19")

    async def test_get_not_found_and_forbidden(self, client, db: AsyncSession):
        _, _, employee, outsider = await seed_team(db)
        leave = await seed_leave(db, employee)
        await db.commit()

        missing = await client.get(f"/api/v1/leaves/{uuid.uuid4()}", headers=auth_headers(outsider))
        hidden = await client.get(f"/api/v1/leaves/{leave.id}", headers=auth_headers(outsider))

        assert missing.status_code == 404
        assert hidden.status_code == 403

    async def test_list_returns_paginated_envelope(self, client, db: AsyncSession):
        _, manager, employee, outsider = await seed_team(db)
        await seed_leave(db, employee)
        await seed_leave(db, outsider)
        await db.commit()

        resp = await client.get("/api/v1/leaves/?limit=5", headers=auth_headers(manager))

        assert resp.status_code == 200
        body = resp.json()
        assert body["meta"]["total"] == 1
        assert body["meta"]["limit"] == 5
        assert body["data"][0]["employee"]["name"] == "Eve Employee"

    async def test_pending_approvals_requires_manager(self, client, db: AsyncSession):
        _, manager, employee, _ = await seed_team(db)
        await seed_leave(db, employee)
        await db.commit()

        denied = await client.get("/api/v1/leaves/pending-approvals", headers=auth_headers(employee))
        allowed = await client.get("/api/v1/leaves/pending-approvals", headers=auth_headers(manager))

        assert denied.status_code == 403
        assert allowed.status_code == 200
        assert len(allowed.json()) == 1
