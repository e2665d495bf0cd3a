"""Reporting service — read-only aggregation over leaves, claims and users.

All methods are static async, following the project convention.
Aggregation runs as COUNT/SUM + GROUP BY in the database; nothing is cached.
"""

from __future__ import annotations

from calendar import monthrange
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import case, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.common.constants import (
    CALENDAR_TEXT_COLOR,
    STATUS_COLORS,
    TREND_MONTHS,
    ClaimStatus,
    LeaveStatus,
    UserRole,
)
from leavedesk.common.exceptions import ValidationException
from leavedesk.config import settings
from leavedesk.dashboard.schemas import (
    CalendarEvent,
    ClaimStatsOut,
    ClaimStatusBucket,
    DashboardStatsOut,
    DepartmentLeaveStat,
    ExpenseTypeBucket,
    LeaveCounts,
    LeaveStatsOut,
    LeaveTypeBucket,
    MonthlyTrendPoint,
    StatusBucket,
    UserCounts,
)
from leavedesk.expenses.models import ReimbursementClaim
from leavedesk.leave.models import LeaveRequest
from leavedesk.leave.service import LeaveService
from leavedesk.users.models import User
from leavedesk.users.service import UserService


def _today() -> date:
    """Current calendar day in the configured timezone."""
    from zoneinfo import ZoneInfo

    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def _dec(value: Any) -> Decimal:
    return Decimal(str(value or 0))


def _trend_months(today: date, months: int = TREND_MONTHS) -> list[tuple[int, int]]:
    """(year, month) pairs for the last *months* calendar months, oldest first."""
    year, month = today.year, today.month
    out: list[tuple[int, int]] = []
    for _ in range(months):
        out.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(out))


class DashboardService:
    """Async reporting queries."""

    # ═════════════════════════════════════════════════════════════════
    # Leave stats (requester scope)
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_leave_stats(db: AsyncSession, requester: User) -> LeaveStatsOut:
        """Counts and day sums by status, plus approved counts/days by type."""
        scope = await UserService.visible_employee_ids(db, requester)

        status_q = (
            select(
                LeaveRequest.status,
                func.count(LeaveRequest.id),
                func.coalesce(func.sum(LeaveRequest.total_days), 0),
            )
            .group_by(LeaveRequest.status)
        )
        count_col = func.count(LeaveRequest.id)
        type_q = (
            select(
                LeaveRequest.leave_type,
                count_col,
                func.coalesce(func.sum(LeaveRequest.total_days), 0),
            )
            .where(LeaveRequest.status == LeaveStatus.approved)
            .group_by(LeaveRequest.leave_type)
            .order_by(count_col.desc())
        )
        if scope is not None:
            status_q = status_q.where(LeaveRequest.employee_id.in_(scope))
            type_q = type_q.where(LeaveRequest.employee_id.in_(scope))

        by_status = {s: StatusBucket() for s in LeaveStatus}
        for status, count, days in (await db.execute(status_q)).all():
            by_status[LeaveStatus(status)] = StatusBucket(count=count, days=_dec(days))

        by_type = [
            LeaveTypeBucket(leave_type=lt, count=count, days=_dec(days))
            for lt, count, days in (await db.execute(type_q)).all()
        ]

        return LeaveStatsOut(
            by_status=by_status,
            approved_days=by_status[LeaveStatus.approved].days,
            by_type=by_type,
        )

    # ═════════════════════════════════════════════════════════════════
    # Claim stats (requester scope)
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_claim_stats(db: AsyncSession, requester: User) -> ClaimStatsOut:
        scope = await UserService.visible_employee_ids(db, requester)

        status_q = (
            select(
                ReimbursementClaim.status,
                func.count(ReimbursementClaim.id),
                func.coalesce(func.sum(ReimbursementClaim.amount), 0),
            )
            .group_by(ReimbursementClaim.status)
        )
        count_col = func.count(ReimbursementClaim.id)
        type_q = (
            select(
                ReimbursementClaim.type,
                count_col,
                func.coalesce(func.sum(ReimbursementClaim.amount), 0),
            )
            .where(ReimbursementClaim.status == ClaimStatus.approved)
            .group_by(ReimbursementClaim.type)
            .order_by(count_col.desc())
        )
        if scope is not None:
            status_q = status_q.where(ReimbursementClaim.employee_id.in_(scope))
            type_q = type_q.where(ReimbursementClaim.employee_id.in_(scope))

        by_status = {s: ClaimStatusBucket() for s in ClaimStatus}
        for status, count, amount in (await db.execute(status_q)).all():
            by_status[ClaimStatus(status)] = ClaimStatusBucket(count=count, amount=_dec(amount))

        by_type = [
            ExpenseTypeBucket(type=t, count=count, amount=_dec(amount))
            for t, count, amount in (await db.execute(type_q)).all()
        ]

        return ClaimStatsOut(
            by_status=by_status,
            approved_amount=by_status[ClaimStatus.approved].amount,
            by_type=by_type,
        )

    # ═════════════════════════════════════════════════════════════════
    # Admin dashboard
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_dashboard_stats(db: AsyncSession) -> DashboardStatsOut:
        """Organisation-wide user, leave, trend and department figures."""
        today = _today()

        # ── Users ───────────────────────────────────────────────────
        user_row = (
            await db.execute(
                select(
                    func.count(User.id),
                    func.count(case((User.role == UserRole.employee, 1))),
                    func.count(case((User.role == UserRole.manager, 1))),
                    func.count(case((User.role == UserRole.admin, 1))),
                    func.count(case((User.is_active.is_(True), 1))),
                    func.count(case((User.is_active.is_(False), 1))),
                )
            )
        ).one()
        users = UserCounts(
            total=user_row[0],
            employees=user_row[1],
            managers=user_row[2],
            admins=user_row[3],
            active=user_row[4],
            inactive=user_row[5],
        )

        # ── Leaves by status ────────────────────────────────────────
        status_rows = (
            await db.execute(
                select(LeaveRequest.status, func.count(LeaveRequest.id))
                .group_by(LeaveRequest.status)
            )
        ).all()
        status_counts = {LeaveStatus(s): c for s, c in status_rows}
        leaves = LeaveCounts(
            total=sum(status_counts.values()),
            **{s.value: status_counts.get(s, 0) for s in LeaveStatus},
        )

        # ── Approved leaves by type ─────────────────────────────────
        count_col = func.count(LeaveRequest.id)
        type_rows = (
            await db.execute(
                select(
                    LeaveRequest.leave_type,
                    count_col,
                    func.coalesce(func.sum(LeaveRequest.total_days), 0),
                )
                .where(LeaveRequest.status == LeaveStatus.approved)
                .group_by(LeaveRequest.leave_type)
                .order_by(count_col.desc())
            )
        ).all()
        leaves_by_type = [
            LeaveTypeBucket(leave_type=lt, count=c, days=_dec(d)) for lt, c, d in type_rows
        ]

        # ── Monthly trend (by creation month) ───────────────────────
        months = _trend_months(today)
        first_year, first_month = months[0]
        window_start = datetime(first_year, first_month, 1, tzinfo=timezone.utc)

        year_col = extract("year", LeaveRequest.created_at)
        month_col = extract("month", LeaveRequest.created_at)
        trend_rows = (
            await db.execute(
                select(
                    year_col,
                    month_col,
                    func.count(LeaveRequest.id),
                    func.count(case((LeaveRequest.status == LeaveStatus.approved, 1))),
                    func.count(case((LeaveRequest.status == LeaveStatus.pending, 1))),
                    func.count(case((LeaveRequest.status == LeaveStatus.rejected, 1))),
                )
                .where(LeaveRequest.created_at >= window_start)
                .group_by(year_col, month_col)
            )
        ).all()
        trend_map = {
            (int(y), int(m)): MonthlyTrendPoint(
                year=int(y), month=int(m), total=t, approved=a, pending=p, rejected=r,
            )
            for y, m, t, a, p, r in trend_rows
        }
        monthly_trend = [
            trend_map.get((y, m), MonthlyTrendPoint(year=y, month=m)) for y, m in months
        ]

        # ── Department-wise ─────────────────────────────────────────
        dept_total = func.count(LeaveRequest.id)
        dept_rows = (
            await db.execute(
                select(
                    User.department,
                    dept_total,
                    func.count(case((LeaveRequest.status == LeaveStatus.approved, 1))),
                    func.count(case((LeaveRequest.status == LeaveStatus.pending, 1))),
                )
                .select_from(LeaveRequest)
                .join(User, LeaveRequest.employee_id == User.id)
                .group_by(User.department)
                .order_by(dept_total.desc(), User.department)
            )
        ).all()
        department_stats = [
            DepartmentLeaveStat(department=d, total=t, approved=a, pending=p)
            for d, t, a, p in dept_rows
        ]

        return DashboardStatsOut(
            users=users,
            leaves=leaves,
            leaves_by_type=leaves_by_type,
            monthly_trend=monthly_trend,
            department_stats=department_stats,
        )

    # ═════════════════════════════════════════════════════════════════
    # Calendar
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_calendar_events(
        db: AsyncSession,
        requester: User,
        *,
        month: Optional[int] = None,
        year: Optional[int] = None,
        status: Optional[LeaveStatus] = None,
    ) -> list[CalendarEvent]:
        """Calendar events for visible requests intersecting the month/year window.

        A month without a year uses the current year; a year alone spans the
        whole year; neither means no date window.
        """
        if month is not None and not 1 <= month <= 12:
            raise ValidationException({"month": ["Month must be between 1 and 12."]})

        query = (
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.employee), selectinload(LeaveRequest.reviewer))
            .order_by(LeaveRequest.start_date, LeaveRequest.created_at)
        )

        scope = await UserService.visible_employee_ids(db, requester)
        if scope is not None:
            query = query.where(LeaveRequest.employee_id.in_(scope))
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        if month is not None or year is not None:
            target_year = year if year is not None else _today().year
            if month is not None:
                window_start = date(target_year, month, 1)
                window_end = date(target_year, month, monthrange(target_year, month)[1])
            else:
                window_start = date(target_year, 1, 1)
                window_end = date(target_year, 12, 31)
            query = query.where(
                LeaveRequest.start_date <= window_end,
                LeaveRequest.end_date >= window_start,
            )

        events: list[CalendarEvent] = []
        for req in (await db.execute(query)).scalars().all():
            color = STATUS_COLORS[req.status]
            events.append(
                CalendarEvent(
                    id=req.id,
                    title=f"{req.employee.name} - {req.leave_type.value.capitalize()}",
                    start=req.start_date,
                    # calendar widgets treat the end date as exclusive
                    end=req.end_date + timedelta(days=1),
                    background_color=color,
                    border_color=color,
                    text_color=CALENDAR_TEXT_COLOR,
                    extended_props=LeaveService.build_leave_response(req),
                )
            )
        return events
