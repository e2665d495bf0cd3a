"""Common module — shared utilities for LeaveDesk."""

from leavedesk.common.audit import AuditTrail, create_audit_entry
from leavedesk.common.constants import (
    BALANCE_TRACKED_TYPES,
    DEFAULT_LEAVE_BALANCE,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    STATUS_COLORS,
    ClaimStatus,
    ExpenseType,
    HalfDayPeriod,
    LeaveStatus,
    LeaveType,
    UserRole,
)
from leavedesk.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidTransitionException,
    NotFoundException,
    OverlappingRequestException,
    ValidationException,
    format_days,
    register_exception_handlers,
)
from leavedesk.common.filters import apply_filters, apply_search
from leavedesk.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "ClaimStatus",
    "ExpenseType",
    "HalfDayPeriod",
    "LeaveStatus",
    "LeaveType",
    "UserRole",
    "BALANCE_TRACKED_TYPES",
    "DEFAULT_LEAVE_BALANCE",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "STATUS_COLORS",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidTransitionException",
    "NotFoundException",
    "OverlappingRequestException",
    "ValidationException",
    "format_days",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
