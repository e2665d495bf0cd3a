#!/usr/bin/env python3
"""Seed the database with demo users and sample leave requests.

Usage:
    leavedesk-seed            # create tables, add missing demo data
    leavedesk-seed --reset    # wipe leaves, claims and users first
"""

import argparse
import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.service import hash_password
from leavedesk.common.audit import AuditTrail
from leavedesk.common.constants import LeaveStatus, LeaveType, UserRole
from leavedesk.common.logging_config import configure_logging
from leavedesk.database import async_session_factory, create_tables, engine
from leavedesk.expenses.models import ReimbursementClaim
from leavedesk.leave.models import LeaveRequest
from leavedesk.leave.service import LeaveService
from leavedesk.users.models import User

logger = logging.getLogger("leavedesk.seed")

ADMIN = {
    "name": "Super Admin",
    "email": "admin@company.com",
    "password": "Admin@123",
    "department": "Management",
    "position": "HR Director",
    "phone": "+1234567890",
}

MANAGERS = [
    {
        "name": "Sarah Johnson",
        "email": "sarah.manager@company.com",
        "password": "Manager@123",
        "department": "Engineering",
        "position": "Engineering Manager",
        "phone": "+1234567891",
    },
    {
        "name": "David Chen",
        "email": "david.manager@company.com",
        "password": "Manager@123",
        "department": "Design",
        "position": "Design Lead",
        "phone": "+1234567892",
    },
]

# (name, email, department, position, phone, manager index)
EMPLOYEES = [
    ("Alice Brown", "alice@company.com", "Engineering", "Software Engineer", "+1234567893", 0),
    ("Bob Martinez", "bob@company.com", "Engineering", "Backend Developer", "+1234567894", 0),
    ("Carol White", "carol@company.com", "Engineering", "Frontend Developer", "+1234567895", 0),
    ("Daniel Kim", "daniel@company.com", "Design", "UI/UX Designer", "+1234567896", 1),
    ("Eva Singh", "eva@company.com", "Design", "Graphic Designer", "+1234567897", 1),
]
EMPLOYEE_PASSWORD = "Employee@123"

# (employee index, type, status, start offset, end offset, reason, review comment)
SAMPLE_LEAVES = [
    (0, LeaveType.annual, LeaveStatus.approved, -10, -8,
     "Family vacation planned for the long weekend.", "Approved. Enjoy your vacation!"),
    (0, LeaveType.sick, LeaveStatus.pending, 3, 4,
     "Medical appointment and recovery time needed.", ""),
    (1, LeaveType.casual, LeaveStatus.rejected, -5, -4,
     "Personal errand that needs urgent attention.",
     "Insufficient team coverage during this period."),
    (1, LeaveType.annual, LeaveStatus.approved, 7, 11,
     "Annual family trip abroad.", "Approved. Have a great trip!"),
    (2, LeaveType.annual, LeaveStatus.pending, 14, 18,
     "Leisure travel and rest during festive season.", ""),
    (3, LeaveType.sick, LeaveStatus.approved, -3, -2,
     "Flu and fever requiring bed rest and medical care.", "Get well soon!"),
    (4, LeaveType.casual, LeaveStatus.pending, 2, 2,
     "Personal appointment that cannot be rescheduled.", ""),
]


async def _get_or_create_user(
    session: AsyncSession,
    *,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    department: str,
    position: str,
    phone: str,
    manager: Optional[User] = None,
) -> tuple[User, bool]:
    existing = (
        await session.execute(select(User).where(User.email == email))
    ).scalars().first()
    if existing is not None:
        return existing, False

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        department=department,
        position=position,
        phone=phone,
        manager=manager,
    )
    session.add(user)
    await session.flush()
    logger.info("Created %s %s", role.value, email)
    return user, True


async def reset_database(session: AsyncSession) -> None:
    """Delete every leave request, claim, audit entry and user."""
    await session.execute(delete(AuditTrail))
    await session.execute(delete(LeaveRequest))
    await session.execute(delete(ReimbursementClaim))
    await session.execute(update(User).values(manager_id=None))
    await session.execute(delete(User))
    await session.flush()
    logger.warning("Cleared existing users, leaves and claims")


async def seed_database(session: AsyncSession, today: Optional[date] = None) -> dict[str, int]:
    """Insert demo users and, for newly created employees, sample leaves.

    Existing emails are left untouched, so running twice is harmless.
    Returns counts of the rows created.
    """
    today = today or date.today()
    counts = {"users": 0, "leaves": 0}

    _, created = await _get_or_create_user(
        session, role=UserRole.admin, **ADMIN,
    )
    counts["users"] += created

    managers: list[User] = []
    for data in MANAGERS:
        manager, created = await _get_or_create_user(
            session, role=UserRole.manager, **data,
        )
        managers.append(manager)
        counts["users"] += created

    employees: list[tuple[User, bool]] = []
    for name, email, department, position, phone, manager_idx in EMPLOYEES:
        employee, created = await _get_or_create_user(
            session,
            name=name,
            email=email,
            password=EMPLOYEE_PASSWORD,
            role=UserRole.employee,
            department=department,
            position=position,
            phone=phone,
            manager=managers[manager_idx],
        )
        employees.append((employee, created))
        counts["users"] += created

    now = datetime.now(timezone.utc)
    for emp_idx, leave_type, status, start_off, end_off, reason, comment in SAMPLE_LEAVES:
        employee, created = employees[emp_idx]
        if not created:
            continue
        start = today + timedelta(days=start_off)
        end = today + timedelta(days=end_off)
        reviewed = status in (LeaveStatus.approved, LeaveStatus.rejected)
        reviewer = managers[EMPLOYEES[emp_idx][5]] if reviewed else None
        total_days = LeaveService.calculate_total_days(start, end, False)

        session.add(LeaveRequest(
            employee=employee,
            leave_type=leave_type,
            start_date=start,
            end_date=end,
            total_days=total_days,
            is_half_day=False,
            reason=reason,
            status=status,
            reviewer=reviewer,
            review_comment=comment,
            reviewed_at=now if reviewed else None,
        ))
        if status == LeaveStatus.approved:
            column = f"{leave_type.value}_balance"
            setattr(employee, column, getattr(employee, column) - total_days)
        counts["leaves"] += 1

    await session.flush()
    logger.info("Seeded %d users and %d leave requests", counts["users"], counts["leaves"])
    return counts


async def _run(reset: bool) -> dict[str, int]:
    await create_tables()
    try:
        async with async_session_factory() as session:
            async with session.begin():
                if reset:
                    await reset_database(session)
                return await seed_database(session)
    finally:
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed LeaveDesk with demo data")
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete existing users, leaves and claims before seeding",
    )
    args = parser.parse_args()

    configure_logging()
    counts = asyncio.run(_run(args.reset))

    print(f"\nSeeded {counts['users']} users and {counts['leaves']} leave requests.")
    print("\nLogin credentials:")
    print(f"  admin     {ADMIN['email']} / {ADMIN['password']}")
    for m in MANAGERS:
        print(f"  manager   {m['email']} / {m['password']}")
    for _, email, *_rest in EMPLOYEES:
        print(f"  employee  {email} / {EMPLOYEE_PASSWORD}")


if __name__ == "__main__":
    main()
