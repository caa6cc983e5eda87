"""
Notification service - leave events dispatched after commit

The leave engine emits a LeaveEvent once its transaction has committed.
Subscribers deliver it (in-app rows here; email is an external subscriber).
Delivery is best-effort: a failing subscriber is logged and skipped and
never affects the committed leave decision.
"""
import enum
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.models.employee import Employee, Role
from app.models.notification import Notification
from app.services.hierarchy_service import resolve_chain
from app.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)


class LeaveEventType(str, enum.Enum):
    LEAVE_APPLIED = "LEAVE_APPLIED"
    LEAVE_UPDATED = "LEAVE_UPDATED"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    LEAVE_PARTIALLY_APPROVED = "LEAVE_PARTIALLY_APPROVED"
    LEAVE_REJECTED = "LEAVE_REJECTED"
    LEAVE_STATUS_UPDATED = "LEAVE_STATUS_UPDATED"
    LEAVE_CONVERTED = "LEAVE_CONVERTED"


EVENT_TITLES = {
    LeaveEventType.LEAVE_APPLIED: "New leave request",
    LeaveEventType.LEAVE_UPDATED: "Leave request updated",
    LeaveEventType.LEAVE_APPROVED: "Leave approved",
    LeaveEventType.LEAVE_PARTIALLY_APPROVED: "Leave partially approved",
    LeaveEventType.LEAVE_REJECTED: "Leave rejected",
    LeaveEventType.LEAVE_STATUS_UPDATED: "Leave status updated",
    LeaveEventType.LEAVE_CONVERTED: "Leave converted to casual",
}


class LeaveEvent(BaseModel):
    """A committed leave state change, addressed to recipients by employee id"""
    event_type: LeaveEventType
    leave_request_id: int
    employee_id: int
    actor_id: int
    to: List[int] = Field(default_factory=list, description="Primary recipients")
    cc: List[int] = Field(default_factory=list, description="Copied recipients")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Template data")


Subscriber = Callable[[Session, LeaveEvent], None]

_subscribers: List[Subscriber] = []


def subscribe(handler: Subscriber) -> Subscriber:
    """Register a subscriber; usable as a decorator."""
    if handler not in _subscribers:
        _subscribers.append(handler)
    return handler


def unsubscribe(handler: Subscriber) -> None:
    if handler in _subscribers:
        _subscribers.remove(handler)


def emit(db: Session, event: LeaveEvent) -> None:
    """
    Dispatch an event to every subscriber.

    Must be called after the leave transaction has committed. Subscriber
    failures are logged and swallowed.
    """
    for handler in list(_subscribers):
        try:
            handler(db, event)
        except Exception:
            logger.exception(
                "leave notification failed: handler=%s event=%s leave_request_id=%s",
                getattr(handler, "__name__", repr(handler)),
                event.event_type.value,
                event.leave_request_id,
            )
            try:
                db.rollback()
            except Exception:
                logger.exception("rollback after notification failure failed")


def notification_recipients(
    employee: Employee,
    chain: List[Employee],
    actor: Optional[Employee] = None,
) -> Dict[str, List[int]]:
    """
    Pick to/cc recipients for a leave event.

    Without an actor (apply/edit) the request goes to L1 with L2 copied.
    For decisions the employee is addressed; HR copies L1, super admin
    copies L1 and L2, a manager decision goes to the employee alone.
    """
    if actor is None:
        to = [chain[0].id] if chain else []
        cc = [chain[1].id] if len(chain) > 1 else []
        return {"to": to, "cc": cc}

    cc: List[int] = []
    if actor.role == Role.HR.value:
        cc = [m.id for m in chain[:1]]
    elif actor.role == Role.SUPER_ADMIN.value:
        cc = [m.id for m in chain[:2]]
    cc = [i for i in cc if i not in (employee.id, actor.id)]
    return {"to": [employee.id], "cc": list(dict.fromkeys(cc))}


def _render_message(event: LeaveEvent) -> str:
    payload = event.payload
    parts = [
        f"{payload.get('employee_name', 'Employee')}:",
        f"{payload.get('leave_type', '')} leave",
        f"{payload.get('start_date', '')} to {payload.get('end_date', '')}",
        f"({payload.get('no_of_days', '')} day(s))",
    ]
    if payload.get("status"):
        parts.append(f"status {payload['status']}")
    if payload.get("comment"):
        parts.append(f"comment: {payload['comment']}")
    if payload.get("urgent"):
        parts.insert(0, "[URGENT]")
    return " ".join(str(p) for p in parts if p)


@subscribe
def record_notifications(db: Session, event: LeaveEvent) -> None:
    """Default subscriber: one in-app notification per recipient."""
    recipients = list(dict.fromkeys(event.to + event.cc))
    if not recipients:
        return
    now = datetime.now(timezone.utc)
    message = _render_message(event)
    for user_id in recipients:
        db.add(Notification(
            user_id=user_id,
            title=EVENT_TITLES[event.event_type],
            message=message,
            type=event.event_type.value,
            leave_request_id=event.leave_request_id,
            is_read=False,
            created_at=now,
        ))
    db.commit()
    logger.info(
        "leave notification recorded: event=%s leave_request_id=%s recipients=%s",
        event.event_type.value, event.leave_request_id, recipients,
    )


def build_payload(leave_request, employee: Employee, **extra: Any) -> Dict[str, Any]:
    """Template data shared by all leave events"""
    payload = {
        "employee_name": employee.name,
        "employee_code": employee.emp_code,
        "leave_type": leave_request.leave_type,
        "start_date": leave_request.start_date,
        "start_type": leave_request.start_type,
        "end_date": leave_request.end_date,
        "end_type": leave_request.end_type,
        "no_of_days": leave_request.no_of_days,
        "reason": leave_request.reason,
        "status": leave_request.current_status,
    }
    payload.update(extra)
    return sanitize_for_json(payload)


def dispatch_leave_event(
    db: Session,
    event_type: LeaveEventType,
    leave_request,
    employee: Employee,
    actor: Optional[Employee] = None,
    **extra: Any,
) -> None:
    """
    Build and emit a leave event for a committed change.

    Recipient resolution runs here too, so a broken directory lookup is
    logged like any other delivery failure and never reaches the caller.
    """
    try:
        chain = resolve_chain(db, employee.id, depth=2)
        recipients = notification_recipients(employee, chain, actor)
        event = LeaveEvent(
            event_type=event_type,
            leave_request_id=leave_request.id,
            employee_id=employee.id,
            actor_id=(actor or employee).id,
            to=recipients["to"],
            cc=recipients["cc"],
            payload=build_payload(
                leave_request,
                employee,
                actor_name=actor.name if actor else None,
                actor_role=actor.role if actor else None,
                **extra,
            ),
        )
    except Exception:
        logger.exception(
            "leave notification not built: event=%s leave_request_id=%s",
            event_type.value, getattr(leave_request, "id", None),
        )
        return
    emit(db, event)
