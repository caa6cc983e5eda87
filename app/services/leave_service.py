"""
Leave service - business logic for leave management
"""
import logging
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, exists, or_
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientBalanceError,
    LeaveValidationError,
    NotFoundError,
    StateError,
)
from app.models.employee import Employee, EmployeeStatus, Role
from app.models.leave import (
    ApprovalStatus,
    DayStatus,
    LeaveDay,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
)
from app.schemas.leave import LeaveApplyRequest
from app.services import balance_service as ledger
from app.services.audit_service import log_audit
from app.services.calendar_service import (
    LeaveDayPlan,
    PlannedDay,
    calculate_leave_days,
    day_weight,
    is_excluded_weekday,
    months_touched,
)
from app.services.certificate_store import delete_certificate
from app.services.hierarchy_service import (
    HR_ACTIONABLE_ROLES,
    can_act_on,
    can_edit,
    can_view,
    resolve_chain,
)
from app.services.holiday_service import get_holiday_map
from app.services.leave_status import derive_status, summarize_days
from app.services.notification_service import LeaveEventType, dispatch_leave_event

logger = logging.getLogger(__name__)

# (max casual days, required notice in calendar days); None is the open upper band
CASUAL_NOTICE_LADDER: List[Tuple[Optional[Decimal], int]] = [
    (Decimal("2"), 3),
    (Decimal("5"), 7),
    (None, 30),
]

# Leave types an employee serving notice may still apply for
ON_NOTICE_LEAVE_TYPES = frozenset({LeaveType.SICK, LeaveType.LOP, LeaveType.PERMISSION})

SEARCH_PATTERN = re.compile(r"^[a-zA-Z0-9\s]*$")

NOT_VISIBLE_MESSAGE = "Leave request not found or you do not have permission to access it"

ADMIN_ROLES = (Role.HR.value, Role.SUPER_ADMIN.value)

SUPER_ADMIN_LOCK_MESSAGE = "Action blocked: Cannot modify a request handled by Super Admin"


def required_notice_days(total_days: Decimal) -> int:
    """Minimum notice for a casual request of total_days (bounds inclusive)"""
    for ceiling, notice in CASUAL_NOTICE_LADDER:
        if ceiling is None or total_days <= ceiling:
            return notice
    return CASUAL_NOTICE_LADDER[-1][1]


def get_leave_rules() -> List[Dict[str, Any]]:
    """Casual notice ladder as displayable rows"""
    rules = []
    lower = None
    for ceiling, notice in CASUAL_NOTICE_LADDER:
        if ceiling is None:
            band = f"More than {lower} days"
        elif lower is None:
            band = f"Up to {ceiling} days"
        else:
            band = f"More than {lower} and up to {ceiling} days"
        rules.append({"leave_required": band, "prior_information_days": notice})
        lower = ceiling
    return rules


def committed_weight(leave_request: LeaveRequest) -> Decimal:
    """Weight still charged to the ledger: every day not rejected"""
    return sum(
        (day_weight(day.day_type) for day in leave_request.days if day.day_status != DayStatus.REJECTED),
        Decimal("0"),
    )


def _label(leave_type: LeaveType) -> str:
    return LeaveType(leave_type).value.capitalize() if leave_type != LeaveType.LOP else "LOP"


def _check_selectable(
    check_date: date,
    which: str,
    leave_type: LeaveType,
    employee: Employee,
    holidays: Dict[date, str],
) -> None:
    """Start and end must be working days unless the leave is LOP"""
    if leave_type == LeaveType.LOP:
        return
    if is_excluded_weekday(check_date, leave_type, employee.role):
        raise LeaveValidationError(
            f"Cannot select {check_date.strftime('%A')} as {which} date. Please select a working day."
        )
    if check_date in holidays:
        raise LeaveValidationError(
            f"Cannot select {holidays[check_date]} ({check_date.isoformat()}) as {which} date"
        )


def validate_date_window(leave_type: LeaveType, start_date: date, today: date) -> None:
    """
    Type-specific window for the start date.

    SICK may start up to SICK_BACKDATE_DAYS in the past and SICK_FORWARD_DAYS
    ahead. LOP and PERMISSION start today or later. Everything else must
    start strictly after today.
    """
    offset = (start_date - today).days
    if leave_type == LeaveType.SICK:
        if offset < -settings.SICK_BACKDATE_DAYS or offset > settings.SICK_FORWARD_DAYS:
            raise LeaveValidationError(
                f"Sick leave can only be applied from {settings.SICK_BACKDATE_DAYS} days before "
                f"today up to {settings.SICK_FORWARD_DAYS} day(s) ahead"
            )
    elif leave_type in (LeaveType.LOP, LeaveType.PERMISSION):
        if offset < 0:
            raise LeaveValidationError(f"Cannot apply {_label(leave_type)} leave for past dates")
    elif offset <= 0:
        raise LeaveValidationError(f"{_label(leave_type)} leave must be applied for a future date")


def check_overlap(
    db: Session,
    employee_id: int,
    days: List[PlannedDay],
    exclude_request_id: Optional[int] = None,
) -> None:
    """
    Reject dates already held by another live leave day.

    Two half days may share a date; anything involving a full day collides.

    Raises:
        ConflictError: naming the first colliding date and the existing status
    """
    if not days:
        return
    query = db.query(LeaveDay, LeaveRequest.current_status).join(
        LeaveRequest, LeaveDay.leave_request_id == LeaveRequest.id
    ).filter(
        LeaveDay.employee_id == employee_id,
        LeaveDay.leave_date >= days[0].date,
        LeaveDay.leave_date <= days[-1].date,
        LeaveDay.day_status != DayStatus.REJECTED,
        LeaveRequest.current_status != LeaveStatus.REJECTED,
    )
    if exclude_request_id is not None:
        query = query.filter(LeaveDay.leave_request_id != exclude_request_id)

    taken: Dict[date, Decimal] = {}
    status_on: Dict[date, LeaveStatus] = {}
    for existing, request_status in query.all():
        taken[existing.leave_date] = taken.get(existing.leave_date, Decimal("0")) + day_weight(existing.day_type)
        status_on.setdefault(existing.leave_date, request_status)

    for day in days:
        if day.date in taken and taken[day.date] + day_weight(day.day_type) > Decimal("1"):
            raise ConflictError(
                f"Leave already exists for {day.date.isoformat()} ({status_on[day.date].value})",
                context={"date": day.date.isoformat(), "status": status_on[day.date].value},
            )


def check_monthly_cap(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    days: List[PlannedDay],
    exclude_request_id: Optional[int] = None,
) -> None:
    """Monthly ceilings: LOP_MONTHLY_CAP for LOP, CASUAL_MONTHLY_CAP for casual"""
    caps = {
        LeaveType.LOP: Decimal(str(settings.LOP_MONTHLY_CAP)),
        LeaveType.CASUAL: Decimal(str(settings.CASUAL_MONTHLY_CAP)),
    }
    cap = caps.get(leave_type)
    if cap is None:
        return

    for (year, month), requested in sorted(months_touched(days).items()):
        month_start = date(year, month, 1)
        month_end = (month_start + timedelta(days=32)).replace(day=1) - timedelta(days=1)
        query = db.query(LeaveDay.day_type).join(
            LeaveRequest, LeaveDay.leave_request_id == LeaveRequest.id
        ).filter(
            LeaveDay.employee_id == employee_id,
            LeaveDay.leave_type == leave_type,
            LeaveDay.day_status != DayStatus.REJECTED,
            LeaveRequest.current_status != LeaveStatus.REJECTED,
            LeaveDay.leave_date >= month_start,
            LeaveDay.leave_date <= month_end,
        )
        if exclude_request_id is not None:
            query = query.filter(LeaveDay.leave_request_id != exclude_request_id)
        used = sum((day_weight(day_type) for (day_type,) in query.all()), Decimal("0"))

        if used + requested > cap:
            raise LeaveValidationError(
                f"Monthly {_label(leave_type)} leave limit exceeded for {month_start.strftime('%B %Y')}: "
                f"{used} day(s) already used, {requested} requested, limit is {cap}",
                context={"month": f"{year:04d}-{month:02d}", "used": float(used),
                         "requested": float(requested), "cap": float(cap)},
            )


def _validate_leave_data(
    db: Session,
    employee: Employee,
    data: LeaveApplyRequest,
    today: date,
    existing: Optional[LeaveRequest] = None,
) -> LeaveDayPlan:
    """
    Run every apply-time rule. Nothing is written.

    Args:
        db: Database session
        employee: Owner of the request
        data: Submitted request fields
        today: Current calendar date
        existing: Request being edited; excluded from overlap and caps and
            refunded to itself for the balance check

    Returns:
        Materialized day plan for the request
    """
    if data.start_date is None or data.end_date is None:
        raise LeaveValidationError("Start date and end date are required")

    leave_type = LeaveType(data.leave_type)

    if employee.status == EmployeeStatus.ON_NOTICE.value and leave_type not in ON_NOTICE_LEAVE_TYPES:
        raise ForbiddenError("Employees on notice may only apply for Sick, LOP or Permission leave")

    if data.end_date < data.start_date:
        raise LeaveValidationError("End date cannot be before start date")

    holidays = get_holiday_map(db, data.start_date, data.end_date)
    _check_selectable(data.start_date, "start", leave_type, employee, holidays)
    _check_selectable(data.end_date, "end", leave_type, employee, holidays)

    validate_date_window(leave_type, data.start_date, today)

    plan = calculate_leave_days(
        data.start_date,
        data.end_date,
        data.start_type,
        data.end_type,
        leave_type,
        employee.role,
        holidays,
    )
    if plan.total_days <= 0:
        raise LeaveValidationError("No valid leave days in the selected range")

    if leave_type == LeaveType.CASUAL:
        notice = required_notice_days(plan.total_days)
        if (data.start_date - today).days < notice:
            raise LeaveValidationError(
                f"Casual leave of {plan.total_days} day(s) requires at least {notice} days prior notice",
                context={"required_notice_days": notice},
            )

    if leave_type == LeaveType.PERMISSION:
        if data.permission_start_time is None or data.permission_end_time is None:
            raise LeaveValidationError("Permission requires a start time and an end time")
        if data.permission_end_time <= data.permission_start_time:
            raise LeaveValidationError("Permission end time must be after start time")
    elif data.permission_start_time is not None or data.permission_end_time is not None:
        raise LeaveValidationError("Only Permission requests may carry a time window")

    if data.doctor_note and leave_type != LeaveType.SICK:
        raise LeaveValidationError("A doctor note can only be attached to Sick leave")

    exclude_id = existing.id if existing is not None else None
    check_overlap(db, employee.id, plan.days, exclude_id)
    check_monthly_cap(db, employee.id, leave_type, plan.days, exclude_id)

    if leave_type in (LeaveType.CASUAL, LeaveType.SICK):
        balance = ledger.get_or_create_balance(db, employee.id)
        available = ledger.available(balance, leave_type)
        if existing is not None and LeaveType(existing.leave_type) == leave_type:
            available += committed_weight(existing)
        if available < plan.total_days:
            raise InsufficientBalanceError(
                f"Insufficient {_label(leave_type)} leave balance. "
                f"Available: {available}, Required: {plan.total_days}",
                context={"available": float(available), "required": float(plan.total_days)},
            )

    return plan


def build_leave_days(leave_request: LeaveRequest, plan: LeaveDayPlan) -> None:
    for planned in plan.days:
        leave_request.days.append(LeaveDay(
            employee_id=leave_request.employee_id,
            leave_date=planned.date,
            day_type=planned.day_type,
            leave_type=leave_request.leave_type,
            day_status=DayStatus.PENDING,
        ))


def reset_approval_tiers(leave_request: LeaveRequest) -> None:
    """Re-open the approval pipeline"""
    leave_request.current_status = LeaveStatus.PENDING
    for tier in ("manager", "hr", "super_admin"):
        setattr(leave_request, f"{tier}_approval_status", ApprovalStatus.PENDING)
        setattr(leave_request, f"{tier}_approval_date", None)
        setattr(leave_request, f"{tier}_approval_comment", None)
        setattr(leave_request, f"{tier}_approved_by", None)


def apply_leave(db: Session, employee: Employee, data: LeaveApplyRequest, today: date) -> LeaveRequest:
    """
    Apply for leave (creates a PENDING request with one row per chargeable day)

    Args:
        db: Database session
        employee: Applicant
        data: Leave request fields
        today: Current calendar date

    Returns:
        Created LeaveRequest instance

    Raises:
        ForbiddenError: Super admin applicant, or on-notice restriction
        LeaveValidationError: Date, calendar, notice, cap or field rule failed
        ConflictError: A requested date is already on leave
        InsufficientBalanceError: Casual/sick balance too low
    """
    if employee.role == Role.SUPER_ADMIN.value:
        raise ForbiddenError("Super Admin cannot apply for leave")

    plan = _validate_leave_data(db, employee, data, today)
    leave_type = LeaveType(data.leave_type)

    try:
        leave_request = LeaveRequest(
            employee_id=employee.id,
            leave_type=leave_type,
            start_date=data.start_date,
            start_type=data.start_type,
            end_date=data.end_date,
            end_type=data.end_type,
            reason=data.reason,
            no_of_days=plan.total_days,
            permission_start_time=data.permission_start_time,
            permission_end_time=data.permission_end_time,
            doctor_note=data.doctor_note,
            current_status=LeaveStatus.PENDING,
            applied_date=today,
        )
        build_leave_days(leave_request, plan)
        db.add(leave_request)
        db.flush()

        ledger.debit(db, employee.id, leave_type, plan.total_days, actor_id=employee.id)

        log_audit(
            db=db,
            actor_id=employee.id,
            action="LEAVE_APPLY",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={
                "leave_type": leave_type,
                "start_date": data.start_date,
                "end_date": data.end_date,
                "no_of_days": plan.total_days,
            }
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    logger.info(
        "leave applied: leave_request_id=%s employee_id=%s type=%s days=%s",
        leave_request.id, employee.id, leave_type.value, plan.total_days,
    )
    dispatch_leave_event(
        db,
        LeaveEventType.LEAVE_APPLIED,
        leave_request,
        employee,
        urgent=data.start_date == today,
    )
    return leave_request


def _load_request(db: Session, request_id: int) -> LeaveRequest:
    leave_request = db.query(LeaveRequest).options(
        joinedload(LeaveRequest.employee)
    ).filter(LeaveRequest.id == request_id).first()
    if leave_request is None:
        raise NotFoundError(NOT_VISIBLE_MESSAGE)
    return leave_request


def get_leave_request(db: Session, request_id: int, actor: Employee) -> LeaveRequest:
    """
    Fetch a request the actor may see

    Raises:
        NotFoundError: Missing, or not visible to actor
    """
    leave_request = _load_request(db, request_id)
    if not can_view(db, actor, leave_request.employee):
        raise NotFoundError(NOT_VISIBLE_MESSAGE)
    return leave_request


def update_leave_request(
    db: Session,
    request_id: int,
    actor: Employee,
    data: LeaveApplyRequest,
    today: date,
) -> LeaveRequest:
    """
    Edit a leave request; all days are replaced and approvals start over

    Owners edit while the request is pending. HR and super admin may edit
    in any status. The committed weight of the old days is refunded before
    the new total is debited.

    Args:
        db: Database session
        request_id: Request to edit
        actor: Employee performing the edit
        data: New request fields
        today: Current calendar date

    Returns:
        Updated LeaveRequest instance

    Raises:
        NotFoundError: Missing or invisible request
        ForbiddenError: Actor may not edit this employee's leave
        StateError: Non-pending request edited by a non-admin, or super admin lock
    """
    leave_request = get_leave_request(db, request_id, actor)
    employee = leave_request.employee

    if not can_edit(db, actor, employee):
        raise ForbiddenError("Not authorized to edit this leave request")
    ensure_not_super_admin_locked(leave_request, actor)
    if leave_request.current_status != LeaveStatus.PENDING and actor.role not in ADMIN_ROLES:
        raise StateError("Only pending leave requests can be edited")

    plan = _validate_leave_data(db, employee, data, today, existing=leave_request)
    old_type = LeaveType(leave_request.leave_type)
    old_committed = committed_weight(leave_request)
    new_type = LeaveType(data.leave_type)

    try:
        if old_committed > 0:
            ledger.credit(db, employee.id, old_type, old_committed, actor_id=actor.id)

        leave_request.days.clear()
        db.flush()

        leave_request.leave_type = new_type
        leave_request.start_date = data.start_date
        leave_request.start_type = data.start_type
        leave_request.end_date = data.end_date
        leave_request.end_type = data.end_type
        leave_request.reason = data.reason
        leave_request.no_of_days = plan.total_days
        leave_request.permission_start_time = data.permission_start_time
        leave_request.permission_end_time = data.permission_end_time
        leave_request.doctor_note = data.doctor_note
        build_leave_days(leave_request, plan)
        reset_approval_tiers(leave_request)
        touch(leave_request, actor)

        ledger.debit(db, employee.id, new_type, plan.total_days, actor_id=actor.id)

        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_UPDATE",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={
                "old_type": old_type,
                "new_type": new_type,
                "refunded": old_committed,
                "no_of_days": plan.total_days,
            }
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(leave_request)
    dispatch_leave_event(
        db,
        LeaveEventType.LEAVE_UPDATED,
        leave_request,
        employee,
        urgent=data.start_date == today,
    )
    return leave_request


def delete_leave_request(db: Session, request_id: int, actor: Employee) -> None:
    """
    Delete a pending request and refund its committed weight

    Raises:
        NotFoundError: Missing or invisible request
        ForbiddenError: Actor is neither the owner nor HR/super admin
        StateError: Request is no longer pending, or super admin lock
    """
    leave_request = get_leave_request(db, request_id, actor)
    employee_id = leave_request.employee_id

    if actor.id != employee_id and actor.role not in ADMIN_ROLES:
        raise ForbiddenError("Not authorized to delete this leave request")
    ensure_not_super_admin_locked(leave_request, actor)
    if leave_request.current_status != LeaveStatus.PENDING:
        raise StateError("Only pending leave requests can be deleted")

    refund = committed_weight(leave_request)
    leave_type = LeaveType(leave_request.leave_type)
    certificate_key = leave_request.doctor_note

    try:
        ledger.credit(db, employee_id, leave_type, refund, actor_id=actor.id)
        log_audit(
            db=db,
            actor_id=actor.id,
            action="LEAVE_DELETE",
            entity_type="leave_requests",
            entity_id=leave_request.id,
            meta={"leave_type": leave_type, "refunded": refund}
        )
        db.delete(leave_request)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("leave deleted: leave_request_id=%s actor_id=%s refunded=%s", request_id, actor.id, refund)
    if certificate_key:
        delete_certificate(certificate_key)


def _rejection_reason(leave_request: LeaveRequest) -> Optional[str]:
    for tier in ("super_admin", "hr", "manager"):
        comment = getattr(leave_request, f"{tier}_approval_comment")
        if comment:
            return comment
    return None


def _latest_approver_id(leave_request: LeaveRequest) -> Optional[int]:
    latest = None
    for tier in ("manager", "hr", "super_admin"):
        decided_at = getattr(leave_request, f"{tier}_approval_date")
        if decided_at is None:
            continue
        if latest is None or decided_at >= latest[0]:
            latest = (decided_at, getattr(leave_request, f"{tier}_approved_by"))
    return latest[1] if latest else None


def describe_leave_request(db: Session, leave_request: LeaveRequest) -> Dict[str, Any]:
    """List-view representation with day-derived fields"""
    summary = summarize_days(leave_request.days)
    item = {column.name: getattr(leave_request, column.name) for column in LeaveRequest.__table__.columns}
    item["days"] = [
        {
            "id": day.id,
            "leave_date": day.leave_date,
            "day_type": day.day_type,
            "leave_type": day.leave_type,
            "day_status": day.day_status,
        }
        for day in leave_request.days
    ]
    employee = leave_request.employee
    approver_id = _latest_approver_id(leave_request)
    approver = db.query(Employee).filter(Employee.id == approver_id).first() if approver_id else None
    item.update(
        employee_name=employee.name if employee else None,
        employee_code=employee.emp_code if employee else None,
        display_status=derive_status(leave_request.days),
        approved_days=summary.approved,
        rejected_days=summary.rejected,
        pending_days=summary.pending,
        rejection_reason=_rejection_reason(leave_request) if summary.rejected > 0 else None,
        approver_name=approver.name if approver else None,
    )
    return item


def list_my_leave_requests(db: Session, employee: Employee, page: int = 1, limit: int = 20) -> Dict[str, Any]:
    """Own requests, newest first"""
    query = db.query(LeaveRequest).options(
        joinedload(LeaveRequest.employee)
    ).filter(LeaveRequest.employee_id == employee.id)
    total = query.count()
    rows = query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.id.desc()).offset(
        (page - 1) * limit
    ).limit(limit).all()
    return {
        "items": [describe_leave_request(db, row) for row in rows],
        "total": total,
        "page": page,
        "limit": limit,
    }


def list_pending_requests(
    db: Session,
    approver: Employee,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    leave_type: Optional[LeaveType] = None,
) -> Dict[str, Any]:
    """
    Requests awaiting a decision the approver is allowed to make

    A request is awaiting a decision while it is pending, partially
    approved, or still holds a pending day. The approver's own requests
    are never listed.

    Args:
        db: Database session
        approver: Manager, HR or super admin
        page: 1-based page number
        limit: Page size
        search: Matches employee code or name (letters, digits and spaces)
        leave_type: Optional leave type filter

    Returns:
        {"items", "total", "page", "limit"}

    Raises:
        ForbiddenError: Approver holds no approving role
        LeaveValidationError: Search term has other characters
    """
    _require_approver(approver, "view pending leaves")
    if search and not SEARCH_PATTERN.match(search):
        raise LeaveValidationError(
            "Search term contains invalid characters. Only letters, numbers and spaces are allowed"
        )

    query = _approver_scoped_query(db, approver).filter(
        or_(
            LeaveRequest.current_status.in_([LeaveStatus.PENDING, LeaveStatus.PARTIALLY_APPROVED]),
            _has_pending_day(),
        ),
    )
    if leave_type is not None:
        query = query.filter(LeaveRequest.leave_type == LeaveType(leave_type))
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(Employee.emp_code.ilike(term), Employee.name.ilike(term)))

    rows = query.order_by(LeaveRequest.start_date.asc(), LeaveRequest.id.asc()).all()
    rows = _within_reach(db, approver, rows)

    total = len(rows)
    start = (page - 1) * limit
    return {
        "items": [describe_leave_request(db, row) for row in rows[start:start + limit]],
        "total": total,
        "page": page,
        "limit": limit,
    }


def list_approved_requests(
    db: Session,
    approver: Employee,
    page: int = 1,
    limit: int = 10,
) -> Dict[str, Any]:
    """
    History of requests the approver could act on that are fully decided

    A request is decided once it has left PENDING and none of its days is
    still pending. Scoping matches list_pending_requests. Newest
    applications come first.

    Returns:
        {"items", "total", "page", "limit"}; each item also carries the
        approver name per tier and the approved/rejected dates

    Raises:
        ForbiddenError: Approver holds no approving role
    """
    _require_approver(approver, "view approved leaves")

    query = _approver_scoped_query(db, approver).filter(
        LeaveRequest.current_status != LeaveStatus.PENDING,
        ~_has_pending_day(),
    )
    rows = query.order_by(
        LeaveRequest.applied_date.desc(),
        LeaveRequest.updated_at.desc(),
        LeaveRequest.id.desc(),
    ).all()
    rows = _within_reach(db, approver, rows)

    items = []
    for row in rows[(page - 1) * limit:page * limit]:
        item = describe_leave_request(db, row)
        for tier in ("manager", "hr", "super_admin"):
            item[f"{tier}_name"] = _employee_name(db, getattr(row, f"{tier}_approved_by"))
        item["approved_dates"] = [d.leave_date for d in row.days if d.day_status == DayStatus.APPROVED]
        item["rejected_dates"] = [d.leave_date for d in row.days if d.day_status == DayStatus.REJECTED]
        items.append(item)

    return {"items": items, "total": len(rows), "page": page, "limit": limit}


def _require_approver(approver: Employee, action: str) -> None:
    if approver.role not in (Role.MANAGER.value, Role.HR.value, Role.SUPER_ADMIN.value):
        raise ForbiddenError(f"Not authorized to {action}")


def _has_pending_day():
    return exists().where(and_(
        LeaveDay.leave_request_id == LeaveRequest.id,
        LeaveDay.day_status == DayStatus.PENDING,
    ))


def _approver_scoped_query(db: Session, approver: Employee):
    """Other employees' requests, narrowed to the approver's reach where SQL can express it"""
    query = db.query(LeaveRequest).join(
        Employee, LeaveRequest.employee_id == Employee.id
    ).options(joinedload(LeaveRequest.employee)).filter(
        LeaveRequest.employee_id != approver.id,
    )
    if approver.role == Role.MANAGER.value:
        query = query.filter(Employee.reporting_manager_id == approver.id)
    elif approver.role == Role.HR.value:
        query = query.filter(Employee.role.in_(HR_ACTIONABLE_ROLES))
    return query


def _within_reach(db: Session, approver: Employee, rows: List[LeaveRequest]) -> List[LeaveRequest]:
    # HR reach is the L1/L2 chain, resolved per employee
    if approver.role != Role.HR.value:
        return rows
    return [
        row for row in rows
        if can_act_on(approver, row.employee, resolve_chain(db, row.employee_id, depth=2))
    ]


def _employee_name(db: Session, employee_id: Optional[int]) -> Optional[str]:
    if employee_id is None:
        return None
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    return employee.name if employee else None


def ensure_not_super_admin_locked(leave_request: LeaveRequest, actor: Employee) -> None:
    """Once a super admin has acted on a request only a super admin may change it"""
    if (
        leave_request.last_updated_by_role == Role.SUPER_ADMIN.value
        and actor.role != Role.SUPER_ADMIN.value
    ):
        raise StateError(SUPER_ADMIN_LOCK_MESSAGE)


def touch(leave_request: LeaveRequest, actor: Employee) -> None:
    """Stamp who last mutated the request"""
    leave_request.last_updated_by = actor.id
    leave_request.last_updated_by_role = actor.role
    leave_request.updated_at = datetime.now(timezone.utc)
