"""Role capability checks — pure functions over (actor, target).

Nothing here touches the database: callers load the users and pass them
in, so each rule can be exercised in isolation.
"""

from __future__ import annotations

import uuid
from typing import Optional, Protocol

from leavedesk.common.constants import UserRole


class Principal(Protocol):
    id: uuid.UUID
    role: UserRole
    manager_id: Optional[uuid.UUID]


def is_admin(actor: Principal) -> bool:
    return actor.role == UserRole.admin


def manages(actor: Principal, target: Principal) -> bool:
    """True when *target* is a direct report of *actor*."""
    return target.manager_id is not None and target.manager_id == actor.id


def can_view_employee(actor: Principal, target: Principal) -> bool:
    """Employees see themselves, managers also their reports, admins everyone."""
    if is_admin(actor) or actor.id == target.id:
        return True
    return actor.role == UserRole.manager and manages(actor, target)


def can_review(actor: Principal, employee: Principal) -> bool:
    """Approve/reject authority over *employee*'s requests."""
    return is_admin(actor) or manages(actor, employee)


def can_cancel_leave(actor: Principal, employee_id: uuid.UUID) -> bool:
    return is_admin(actor) or actor.id == employee_id


def can_edit_user(actor: Principal, target: Principal) -> bool:
    return is_admin(actor) or actor.id == target.id
