"""
Leave status recalculation

The aggregate status of a request is always derived from its day rows.
"""
import logging
from decimal import Decimal
from typing import Iterable, NamedTuple

from app.models.leave import DayStatus, LeaveDay, LeaveRequest, LeaveStatus
from app.services.calendar_service import day_weight

logger = logging.getLogger(__name__)


class DaySummary(NamedTuple):
    approved: Decimal
    rejected: Decimal
    pending: Decimal


def summarize_days(days: Iterable[LeaveDay]) -> DaySummary:
    """Sum day weights per day status"""
    approved = rejected = pending = Decimal("0")
    for day in days:
        weight = day_weight(day.day_type)
        if day.day_status == DayStatus.APPROVED:
            approved += weight
        elif day.day_status == DayStatus.REJECTED:
            rejected += weight
        else:
            pending += weight
    return DaySummary(approved, rejected, pending)


def derive_status(days: Iterable[LeaveDay]) -> LeaveStatus:
    """
    Derive the aggregate status from day statuses.

    All approved -> APPROVED; all rejected -> REJECTED; some approved with
    some rejected or pending -> PARTIALLY_APPROVED; otherwise PENDING.
    """
    summary = summarize_days(days)
    if summary.pending == 0 and summary.rejected == 0 and summary.approved > 0:
        return LeaveStatus.APPROVED
    if summary.pending == 0 and summary.approved == 0 and summary.rejected > 0:
        return LeaveStatus.REJECTED
    if summary.approved > 0 and (summary.rejected > 0 or summary.pending > 0):
        return LeaveStatus.PARTIALLY_APPROVED
    return LeaveStatus.PENDING


def recalculate_status(leave_request: LeaveRequest, action: str) -> LeaveStatus:
    """Persist the derived status on the request (caller commits)."""
    before = leave_request.current_status
    after = derive_status(leave_request.days)
    if before != after:
        leave_request.current_status = after
        logger.info(
            "leave status transition: leave_request_id=%s before=%s after=%s action=%s",
            leave_request.id,
            before.value if before else None,
            after.value,
            action,
        )
    return after
