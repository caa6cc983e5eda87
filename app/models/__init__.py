"""
Database models
"""
from app.models.employee import Employee, Role, EmployeeStatus
from app.models.audit_log import AuditLog
from app.models.leave import (
    LeaveRequest,
    LeaveDay,
    LeaveBalance,
    LeaveType,
    LeaveStatus,
    DayGranularity,
    DayType,
    DayStatus,
    ApprovalStatus,
)
from app.models.holiday import Holiday
from app.models.notification import Notification

__all__ = [
    "Employee",
    "Role",
    "EmployeeStatus",
    "AuditLog",
    "LeaveRequest",
    "LeaveDay",
    "LeaveBalance",
    "LeaveType",
    "LeaveStatus",
    "DayGranularity",
    "DayType",
    "DayStatus",
    "ApprovalStatus",
    "Holiday",
    "Notification",
]
