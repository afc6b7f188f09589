"""Common module — shared utilities for the attendance engine."""

from attendance_engine.common.constants import (
    CONTEXT_SCOPED_ROLES,
    NO_ATTENDANCE,
    SESSION_DERIVED_ROLES,
    ZERO_DURATION,
    AttendanceStatus,
    DayType,
    DurationCategory,
    LeaveStatus,
    ResolutionSource,
    UserRole,
    UserStatus,
)
from attendance_engine.common.exceptions import (
    AggregationError,
    AppException,
    ForbiddenException,
    NotFoundException,
    ReportGenerationError,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    "AggregationError",
    "AppException",
    "AttendanceStatus",
    "CONTEXT_SCOPED_ROLES",
    "DayType",
    "DurationCategory",
    "ForbiddenException",
    "LeaveStatus",
    "NO_ATTENDANCE",
    "NotFoundException",
    "ReportGenerationError",
    "ResolutionSource",
    "SESSION_DERIVED_ROLES",
    "UserRole",
    "UserStatus",
    "ValidationException",
    "ZERO_DURATION",
    "register_exception_handlers",
]
