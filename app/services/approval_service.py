"""
Approval service - approve/reject/force-status/convert actions on leave requests

Every action authorizes through the hierarchy resolver, mutates day rows,
adjusts the ledger, re-derives the request status, commits once and only
then emits its notification event.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_, exists
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    ForbiddenError,
    InsufficientBalanceError,
    LeaveValidationError,
    NotFoundError,
    StateError,
)
from app.models.employee import Employee, Role
from app.models.leave import (
    ApprovalStatus,
    DayStatus,
    LeaveBalance,
    LeaveDay,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
)
from app.services import balance_service as ledger
from app.services.audit_service import log_audit
from app.services.calendar_service import calculate_leave_days, day_weight
from app.services.hierarchy_service import (
    authorize_action,
    is_terminal_approver,
    next_approver,
)
from app.services.holiday_service import get_holiday_map
from app.services.leave_service import (
    build_leave_days,
    committed_weight,
    ensure_not_super_admin_locked,
    touch,
)
from app.services.leave_status import recalculate_status
from app.services.notification_service import LeaveEventType, dispatch_leave_event

logger = logging.getLogger(__name__)

TIER_PREFIX = {
    Role.MANAGER.value: "manager",
    Role.HR.value: "hr",
    Role.SUPER_ADMIN.value: "super_admin",
}

# Tiers below each admin tier; their comments are cleared on a forced status
LOWER_TIERS = {
    Role.HR.value: ("manager",),
    Role.SUPER_ADMIN.value: ("manager", "hr"),
}

STATUS_EVENTS = {
    LeaveStatus.APPROVED: LeaveEventType.LEAVE_APPROVED,
    LeaveStatus.PARTIALLY_APPROVED: LeaveEventType.LEAVE_PARTIALLY_APPROVED,
    LeaveStatus.REJECTED: LeaveEventType.LEAVE_REJECTED,
}

STATUS_TIER_OUTCOME = {
    LeaveStatus.APPROVED: ApprovalStatus.APPROVED,
    LeaveStatus.REJECTED: ApprovalStatus.REJECTED,
}


def _load_for_action(
    db: Session,
    request_id: int,
    actor: Employee,
    verb: str,
) -> Tuple[LeaveRequest, Employee, List[Employee]]:
    """Fetch the request, authorize actor and apply the super admin lock"""
    leave_request = db.query(LeaveRequest).filter(LeaveRequest.id == request_id).first()
    if leave_request is None:
        raise NotFoundError("Leave request not found")
    employee = leave_request.employee
    chain = authorize_action(db, actor, employee, verb)
    ensure_not_super_admin_locked(leave_request, actor)
    return leave_request, employee, chain


def _require_admin(actor: Employee, action: str) -> None:
    if actor.role not in (Role.HR.value, Role.SUPER_ADMIN.value):
        raise ForbiddenError(f"Only HR or Super Admin can {action}")


def _require_comment(comment: Optional[str]) -> str:
    if not comment or not comment.strip():
        raise LeaveValidationError("Rejection reason is required")
    return comment.strip()


def _find_days(leave_request: LeaveRequest, day_ids: Iterable[int]) -> List[LeaveDay]:
    by_id = {day.id: day for day in leave_request.days}
    found = []
    for day_id in day_ids:
        if day_id not in by_id:
            raise NotFoundError("Leave day not found", context={"day_id": day_id})
        found.append(by_id[day_id])
    return found


def _set_day_status(day: LeaveDay, status: DayStatus, actor: Employee) -> None:
    day.day_status = status
    day.updated_by = actor.id
    day.updated_at = datetime.now(timezone.utc)


def _record_tier_decision(
    db: Session,
    leave_request: LeaveRequest,
    actor: Employee,
    decision: ApprovalStatus,
    comment: Optional[str],
) -> None:
    """
    Write the actor's tier sub-status, date, comment and approver id.

    Manager writes are a conditional UPDATE that re-checks, in the same
    statement, that the employee still reports to the actor.

    Raises:
        ForbiddenError: The reporting line changed since authorization
    """
    prefix = TIER_PREFIX[actor.role]
    values: Dict[str, Any] = {
        f"{prefix}_approval_status": decision,
        f"{prefix}_approval_date": datetime.now(timezone.utc),
        f"{prefix}_approval_comment": comment,
        f"{prefix}_approved_by": actor.id,
        "last_updated_by": actor.id,
        "last_updated_by_role": actor.role,
    }

    if actor.role == Role.MANAGER.value:
        reports_to_actor = exists().where(and_(
            Employee.id == LeaveRequest.employee_id,
            Employee.reporting_manager_id == actor.id,
        )).correlate(LeaveRequest)
        matched = db.query(LeaveRequest).filter(
            LeaveRequest.id == leave_request.id,
            reports_to_actor,
        ).update(values, synchronize_session=False)
        if matched == 0:
            logger.warning(
                "manager tier write rejected: leave_request_id=%s actor_id=%s",
                leave_request.id, actor.id,
            )
            raise ForbiddenError("Not authorized to act on this leave")

    for key, value in values.items():
        setattr(leave_request, key, value)


def _notify(
    db: Session,
    leave_request: LeaveRequest,
    employee: Employee,
    actor: Employee,
    event_type: Optional[LeaveEventType] = None,
    **extra: Any,
) -> None:
    if event_type is None:
        event_type = STATUS_EVENTS.get(leave_request.current_status)
    if event_type is None:
        return
    dispatch_leave_event(db, event_type, leave_request, employee, actor, **extra)


def approve_leave(
    db: Session,
    request_id: int,
    actor: Employee,
    comment: Optional[str] = None,
) -> LeaveRequest:
    """
    Approve a whole leave request

    A terminal approver marks every pending day approved. A manager with HR
    or super admin above them only records the manager tier; the days wait
    for the next tier.

    Args:
        db: Database session
        request_id: Leave request ID
        actor: Approver
        comment: Optional approval comment

    Returns:
        Updated LeaveRequest instance

    Raises:
        NotFoundError: If the request does not exist
        ForbiddenError: Self-approval or outside the actor's authority
        StateError: Already approved, nothing pending, or super admin lock
    """
    leave_request, employee, chain = _load_for_action(db, request_id, actor, "approve")

    if leave_request.current_status == LeaveStatus.APPROVED:
        raise StateError("Leave request is already approved")
    pending_days = [d for d in leave_request.days if d.day_status == DayStatus.PENDING]
    if not pending_days:
        raise StateError("Leave request has no pending days to approve")

    terminal = is_terminal_approver(actor, chain)
    try:
        _record_tier_decision(db, leave_request, actor, ApprovalStatus.APPROVED, comment)
        if terminal:
            for day in pending_days:
                _set_day_status(day, DayStatus.APPROVED, actor)
        recalculate_status(leave_request, "approve")
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_APPROVE",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={"final": terminal, "comment": comment, "approved_days": len(pending_days) if terminal else 0}
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    if terminal:
        _notify(db, leave_request, employee, actor, comment=comment)
    else:
        awaiting = next_approver(actor, chain)
        _notify(
            db, leave_request, employee, actor,
            LeaveEventType.LEAVE_APPROVED,
            comment=comment,
            final=False,
            awaiting=awaiting.name if awaiting else None,
        )
    return leave_request


def reject_leave(db: Session, request_id: int, actor: Employee, comment: Optional[str]) -> LeaveRequest:
    """
    Reject a whole leave request at any tier and refund every day still charged

    Raises:
        LeaveValidationError: Missing rejection reason
        StateError: Request already fully rejected, or super admin lock
    """
    comment = _require_comment(comment)
    leave_request, employee, _ = _load_for_action(db, request_id, actor, "reject")

    live_days = [d for d in leave_request.days if d.day_status != DayStatus.REJECTED]
    if not live_days:
        raise StateError("Leave request is already rejected")
    refund = sum((day_weight(d.day_type) for d in live_days), Decimal("0"))

    try:
        for day in live_days:
            _set_day_status(day, DayStatus.REJECTED, actor)
        ledger.credit(db, employee.id, LeaveType(leave_request.leave_type), refund, actor_id=actor.id)
        _record_tier_decision(db, leave_request, actor, ApprovalStatus.REJECTED, comment)
        recalculate_status(leave_request, "reject")
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_REJECT",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={"comment": comment, "refunded": refund}
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    _notify(db, leave_request, employee, actor, LeaveEventType.LEAVE_REJECTED, comment=comment)
    return leave_request


def approve_leave_day(
    db: Session,
    request_id: int,
    day_id: int,
    actor: Employee,
    comment: Optional[str] = None,
) -> LeaveRequest:
    """Approve a single pending day; the request status is re-derived"""
    leave_request, employee, _ = _load_for_action(db, request_id, actor, "approve")
    day = _find_days(leave_request, [day_id])[0]
    if day.day_status == DayStatus.APPROVED:
        raise StateError("Leave day is already approved")
    if day.day_status == DayStatus.REJECTED:
        raise StateError("Cannot approve a rejected leave day")

    try:
        _set_day_status(day, DayStatus.APPROVED, actor)
        status = recalculate_status(leave_request, "approve_day")
        _record_tier_decision(
            db, leave_request, actor, STATUS_TIER_OUTCOME.get(status, ApprovalStatus.PENDING), comment
        )
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_DAY_APPROVE",
            entity_type="leave_days",
            entity_id=day.id,
            meta={"leave_request_id": leave_request.id, "leave_date": day.leave_date}
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    _notify(db, leave_request, employee, actor, comment=comment)
    return leave_request


def reject_leave_day(
    db: Session,
    request_id: int,
    day_id: int,
    actor: Employee,
    comment: Optional[str],
) -> LeaveRequest:
    """
    Reject a single day and refund exactly its weight

    Rejecting a day that is already rejected changes nothing.

    Raises:
        StateError: The day was already approved
    """
    comment = _require_comment(comment)
    leave_request, employee, _ = _load_for_action(db, request_id, actor, "reject")
    day = _find_days(leave_request, [day_id])[0]
    if day.day_status == DayStatus.REJECTED:
        return leave_request
    if day.day_status == DayStatus.APPROVED:
        raise StateError("Cannot reject an approved leave day")

    weight = day_weight(day.day_type)
    try:
        _set_day_status(day, DayStatus.REJECTED, actor)
        ledger.credit(db, employee.id, LeaveType(leave_request.leave_type), weight, actor_id=actor.id)
        status = recalculate_status(leave_request, "reject_day")
        _record_tier_decision(
            db, leave_request, actor, STATUS_TIER_OUTCOME.get(status, ApprovalStatus.PENDING), comment
        )
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_DAY_REJECT",
            entity_type="leave_days",
            entity_id=day.id,
            meta={"leave_request_id": leave_request.id, "leave_date": day.leave_date, "refunded": weight}
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    _notify(
        db, leave_request, employee, actor,
        STATUS_EVENTS.get(leave_request.current_status, LeaveEventType.LEAVE_REJECTED),
        comment=comment,
    )
    return leave_request


def approve_leave_days(
    db: Session,
    request_id: int,
    day_ids: List[int],
    actor: Employee,
    comment: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Approve the listed days and reject every other pending day

    Auto-rejected days are refunded in the same transaction.

    Args:
        db: Database session
        request_id: Leave request ID
        day_ids: Days to approve
        actor: Approver
        comment: Optional comment recorded on the actor's tier

    Returns:
        {"approved": int, "auto_rejected": int, "status": LeaveStatus, "leave_request": LeaveRequest}

    Raises:
        LeaveValidationError: Empty day list
        NotFoundError: A day id does not belong to the request
    """
    if not day_ids:
        raise LeaveValidationError("No days specified for approval")
    leave_request, employee, _ = _load_for_action(db, request_id, actor, "approve")
    selected = {day.id for day in _find_days(leave_request, day_ids)}

    approved = 0
    auto_rejected = 0
    refund = Decimal("0")
    try:
        for day in leave_request.days:
            if day.day_status != DayStatus.PENDING:
                continue
            if day.id in selected:
                _set_day_status(day, DayStatus.APPROVED, actor)
                approved += 1
            else:
                _set_day_status(day, DayStatus.REJECTED, actor)
                refund += day_weight(day.day_type)
                auto_rejected += 1

        ledger.credit(db, employee.id, LeaveType(leave_request.leave_type), refund, actor_id=actor.id)
        status = recalculate_status(leave_request, "approve_days")
        _record_tier_decision(
            db, leave_request, actor, STATUS_TIER_OUTCOME.get(status, ApprovalStatus.PENDING), comment
        )
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_DAYS_APPROVE",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={"approved": approved, "auto_rejected": auto_rejected, "refunded": refund}
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    _notify(
        db, leave_request, employee, actor,
        comment=comment, approved_count=approved, auto_rejected_count=auto_rejected,
    )
    return {
        "approved": approved,
        "auto_rejected": auto_rejected,
        "status": leave_request.current_status,
        "leave_request": leave_request,
    }


def reject_leave_days(
    db: Session,
    request_id: int,
    day_ids: List[int],
    actor: Employee,
    comment: Optional[str],
) -> Dict[str, Any]:
    """Reject a list of days with one refund, one tier update and one notification"""
    if not day_ids:
        raise LeaveValidationError("No days specified for rejection")
    comment = _require_comment(comment)
    leave_request, employee, _ = _load_for_action(db, request_id, actor, "reject")
    days = _find_days(leave_request, day_ids)
    if any(day.day_status == DayStatus.APPROVED for day in days):
        raise StateError("Cannot reject an approved leave day")

    to_reject = [day for day in days if day.day_status == DayStatus.PENDING]
    refund = sum((day_weight(day.day_type) for day in to_reject), Decimal("0"))
    if not to_reject:
        return {"rejected": 0, "status": leave_request.current_status, "leave_request": leave_request}

    try:
        for day in to_reject:
            _set_day_status(day, DayStatus.REJECTED, actor)
        ledger.credit(db, employee.id, LeaveType(leave_request.leave_type), refund, actor_id=actor.id)
        status = recalculate_status(leave_request, "reject_days")
        _record_tier_decision(
            db, leave_request, actor, STATUS_TIER_OUTCOME.get(status, ApprovalStatus.PENDING), comment
        )
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_DAYS_REJECT",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={"day_ids": [day.id for day in to_reject], "refunded": refund}
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    _notify(
        db, leave_request, employee, actor,
        STATUS_EVENTS.get(leave_request.current_status, LeaveEventType.LEAVE_REJECTED),
        comment=comment,
        rejected_dates=[day.leave_date for day in to_reject],
    )
    return {"rejected": len(to_reject), "status": leave_request.current_status, "leave_request": leave_request}


def update_leave_status(
    db: Session,
    request_id: int,
    actor: Employee,
    status: LeaveStatus,
    selected_day_ids: Optional[List[int]] = None,
    reason: Optional[str] = None,
) -> LeaveRequest:
    """
    HR/Super Admin override: set every day, then derive the status

    APPROVED approves every day, REJECTED rejects every day and
    PARTIALLY_APPROVED approves selected_day_ids and rejects the rest.
    Each day moving out of or into REJECTED contributes its weight to a
    single net ledger adjustment.

    Args:
        db: Database session
        request_id: Leave request ID
        actor: HR or super admin
        status: Target status
        selected_day_ids: Days to approve for PARTIALLY_APPROVED
        reason: Comment recorded on the actor's tier

    Returns:
        Updated LeaveRequest instance

    Raises:
        ForbiddenError: Actor is not HR/super admin or outside their authority
        LeaveValidationError: PENDING target, or partial without selected days
        InsufficientBalanceError: Re-approving rejected days needs more balance
        StateError: Super admin lock
    """
    _require_admin(actor, "update leave status")
    status = LeaveStatus(status)
    if status == LeaveStatus.PENDING:
        raise LeaveValidationError("Status must be APPROVED, REJECTED or PARTIALLY_APPROVED")
    if status == LeaveStatus.PARTIALLY_APPROVED and not selected_day_ids:
        raise LeaveValidationError("Select the days to approve for a partial approval")

    leave_request, employee, _ = _load_for_action(db, request_id, actor, "update")
    selected = {day.id for day in _find_days(leave_request, selected_day_ids or [])}
    comment = reason.strip() if reason and reason.strip() else "Status updated by HR/Super Admin"

    delta = Decimal("0")
    try:
        for day in leave_request.days:
            if status == LeaveStatus.APPROVED or (status == LeaveStatus.PARTIALLY_APPROVED and day.id in selected):
                target = DayStatus.APPROVED
            else:
                target = DayStatus.REJECTED
            if day.day_status == target:
                continue
            weight = day_weight(day.day_type)
            if day.day_status == DayStatus.REJECTED:
                delta -= weight
            elif target == DayStatus.REJECTED:
                delta += weight
            _set_day_status(day, target, actor)

        ledger.apply_delta(db, employee.id, LeaveType(leave_request.leave_type), delta, actor_id=actor.id)
        derived = recalculate_status(leave_request, "update_status")
        _record_tier_decision(
            db, leave_request, actor, STATUS_TIER_OUTCOME.get(derived, ApprovalStatus.APPROVED), comment
        )
        for tier in LOWER_TIERS.get(actor.role, ()):
            setattr(leave_request, f"{tier}_approval_comment", None)
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_STATUS_UPDATE",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={"status": derived, "selected_day_ids": sorted(selected), "balance_delta": delta}
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    _notify(db, leave_request, employee, actor, LeaveEventType.LEAVE_STATUS_UPDATED, comment=comment)
    return leave_request


def _check_casual_ceiling(balance: LeaveBalance) -> None:
    ceiling = Decimal(str(settings.CASUAL_BALANCE_CEILING))
    current = ledger.available(balance, LeaveType.CASUAL)
    if current > ceiling:
        raise InsufficientBalanceError(
            f"Casual leave balance would exceed the maximum of {settings.CASUAL_BALANCE_CEILING:g}",
            context={"balance": float(current), "ceiling": float(ceiling)},
        )


def convert_lop_to_casual(db: Session, request_id: int, actor: Employee) -> Dict[str, Any]:
    """
    Convert a pending LOP request to Casual leave

    Days are recomputed under casual rules (Saturdays and holidays drop out
    for non-interns), the LOP weight still charged is refunded and the
    casual total is debited.

    Args:
        db: Database session
        request_id: Leave request ID
        actor: HR or super admin

    Returns:
        {"leave_request", "previous_casual_balance", "new_casual_balance",
         "previous_lop_balance", "new_lop_balance"}

    Raises:
        LeaveValidationError: Not an LOP request, or no casual days remain
        StateError: Request is not pending, or super admin lock
        InsufficientBalanceError: Casual balance too low, or above the ceiling afterwards
    """
    _require_admin(actor, "convert leave requests")
    leave_request, employee, _ = _load_for_action(db, request_id, actor, "convert")

    if leave_request.leave_type != LeaveType.LOP:
        raise LeaveValidationError("Only LOP leave requests can be converted to Casual leave")
    if leave_request.current_status != LeaveStatus.PENDING:
        raise StateError("Only pending leave requests can be converted")

    holidays = get_holiday_map(db, leave_request.start_date, leave_request.end_date)
    plan = calculate_leave_days(
        leave_request.start_date,
        leave_request.end_date,
        leave_request.start_type,
        leave_request.end_type,
        LeaveType.CASUAL,
        employee.role,
        holidays,
    )
    if plan.total_days <= 0:
        raise LeaveValidationError("No valid leave days in the selected range")

    balance = ledger.get_or_create_balance(db, employee.id, lock=True)
    previous_casual = ledger.available(balance, LeaveType.CASUAL)
    previous_lop = ledger.available(balance, LeaveType.LOP)
    if previous_casual < plan.total_days:
        raise InsufficientBalanceError(
            f"Insufficient Casual leave balance. Available: {previous_casual}, Required: {plan.total_days}",
            context={"available": float(previous_casual), "required": float(plan.total_days)},
        )
    lop_refund = committed_weight(leave_request)
    original_days = leave_request.no_of_days
    try:
        ledger.credit(db, employee.id, LeaveType.LOP, lop_refund, actor_id=actor.id)
        ledger.debit(db, employee.id, LeaveType.CASUAL, plan.total_days, actor_id=actor.id)
        _check_casual_ceiling(balance)

        leave_request.days.clear()
        db.flush()
        leave_request.leave_type = LeaveType.CASUAL
        leave_request.no_of_days = plan.total_days
        build_leave_days(leave_request, plan)
        touch(leave_request, actor)
        recalculate_status(leave_request, "convert_lop_to_casual")
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_CONVERT_LOP_TO_CASUAL",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={
                "original_days": original_days,
                "casual_days": plan.total_days,
                "lop_refunded": lop_refund,
            }
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    balance = ledger.get_or_create_balance(db, employee.id)
    result = {
        "leave_request": leave_request,
        "previous_casual_balance": float(previous_casual),
        "new_casual_balance": float(balance.casual_balance),
        "previous_lop_balance": float(previous_lop),
        "new_lop_balance": float(balance.lop_balance),
    }
    _notify(
        db, leave_request, employee, actor, LeaveEventType.LEAVE_CONVERTED,
        original_days=original_days,
    )
    return result
