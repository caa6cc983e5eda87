"""
Balance ledger - per-employee casual/sick/LOP balances

All functions mutate inside the caller's transaction and never commit.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Union

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InsufficientBalanceError, LeaveValidationError
from app.models.employee import Employee, Role
from app.models.leave import LeaveBalance, LeaveType

logger = logging.getLogger(__name__)

Amount = Union[Decimal, float, int, str]

BALANCE_COLUMNS = {
    LeaveType.CASUAL: "casual_balance",
    LeaveType.SICK: "sick_balance",
    LeaveType.LOP: "lop_balance",
}

ZERO = Decimal("0")


def _to_decimal(value: Amount) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def lop_cap() -> Decimal:
    return _to_decimal(settings.LOP_BALANCE_CAP)


def get_or_create_balance(db: Session, employee_id: int, lock: bool = False) -> LeaveBalance:
    """
    Fetch the employee's balance row, creating it on first use.

    A new row starts with casual 0, sick 0 and LOP at LOP_DEFAULT_BALANCE.
    """
    query = db.query(LeaveBalance).filter(LeaveBalance.employee_id == employee_id)
    if lock:
        query = query.with_for_update()
    balance = query.first()
    if balance is None:
        now = datetime.now(timezone.utc)
        balance = LeaveBalance(
            employee_id=employee_id,
            casual_balance=ZERO,
            sick_balance=ZERO,
            lop_balance=_to_decimal(settings.LOP_DEFAULT_BALANCE),
            last_updated=now,
            created_at=now,
        )
        db.add(balance)
        db.flush()
        logger.info("leave balance initialised: employee_id=%s", employee_id)
    return balance


def available(balance: LeaveBalance, leave_type: LeaveType) -> Decimal:
    """Current balance for a ledger leave type (PERMISSION has none)"""
    column = BALANCE_COLUMNS.get(LeaveType(leave_type))
    if column is None:
        return ZERO
    return _to_decimal(getattr(balance, column) or 0)


def _stamp(balance: LeaveBalance, actor_id: Optional[int]) -> None:
    balance.last_updated = datetime.now(timezone.utc)
    if actor_id is not None:
        balance.updated_by = actor_id


def debit(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    amount: Amount,
    actor_id: Optional[int] = None,
) -> Optional[LeaveBalance]:
    """
    Deduct days from a balance.

    Casual and sick debits fail with InsufficientBalanceError when the balance
    would go negative. LOP is unpaid leave and is never sufficiency-checked;
    its balance may go negative so a later refund restores exactly what was
    charged.
    """
    leave_type = LeaveType(leave_type)
    amount = _to_decimal(amount)
    if leave_type not in BALANCE_COLUMNS or amount == ZERO:
        return None
    if amount < ZERO:
        raise LeaveValidationError("Debit amount must not be negative")

    balance = get_or_create_balance(db, employee_id, lock=True)
    column = BALANCE_COLUMNS[leave_type]
    before = available(balance, leave_type)
    after = before - amount

    if after < ZERO and leave_type != LeaveType.LOP:
        raise InsufficientBalanceError(
            f"Insufficient {leave_type.value.lower()} leave balance",
            context={"available": float(before), "required": float(amount)},
        )

    setattr(balance, column, after)
    _stamp(balance, actor_id)
    logger.info(
        "leave balance debit: employee_id=%s type=%s amount=%s before=%s after=%s",
        employee_id, leave_type.value, amount, before, after,
    )
    return balance


def credit(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    amount: Amount,
    actor_id: Optional[int] = None,
) -> Optional[LeaveBalance]:
    """
    Refund days to a balance.

    LOP credits are clamped at LOP_BALANCE_CAP; anything above the cap is
    dropped. Casual and sick are not clamped here.
    """
    leave_type = LeaveType(leave_type)
    amount = _to_decimal(amount)
    if leave_type not in BALANCE_COLUMNS or amount == ZERO:
        return None
    if amount < ZERO:
        raise LeaveValidationError("Credit amount must not be negative")

    balance = get_or_create_balance(db, employee_id, lock=True)
    column = BALANCE_COLUMNS[leave_type]
    before = available(balance, leave_type)
    after = before + amount

    if leave_type == LeaveType.LOP and after > lop_cap():
        logger.warning(
            "LOP balance capped: employee_id=%s requested_refund=%s applied_refund=%s cap=%s",
            employee_id, amount, max(lop_cap() - before, ZERO), lop_cap(),
        )
        after = max(lop_cap(), before)

    setattr(balance, column, after)
    _stamp(balance, actor_id)
    logger.info(
        "leave balance credit: employee_id=%s type=%s amount=%s before=%s after=%s",
        employee_id, leave_type.value, amount, before, after,
    )
    return balance


def apply_delta(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    delta: Amount,
    actor_id: Optional[int] = None,
) -> Optional[LeaveBalance]:
    """Apply a signed net change: positive refunds, negative debits."""
    delta = _to_decimal(delta)
    if delta > ZERO:
        return credit(db, employee_id, leave_type, delta, actor_id)
    if delta < ZERO:
        return debit(db, employee_id, leave_type, -delta, actor_id)
    return None


def get_leave_balances(db: Session, employee: Employee) -> Dict[str, float]:
    """
    Balances as shown to the employee.

    Super admins take no leave and always see zero balances.
    """
    if employee.role == Role.SUPER_ADMIN.value:
        return {"casual": 0.0, "sick": 0.0, "lop": 0.0}

    balance = get_or_create_balance(db, employee.id)
    db.commit()
    return {
        "casual": float(balance.casual_balance),
        "sick": float(balance.sick_balance),
        "lop": float(balance.lop_balance),
    }
