"""
Tests for the balance ledger
"""
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from conftest import create_employee, get_balance
from app.core.errors import InsufficientBalanceError
from app.models.employee import Role
from app.models.leave import LeaveBalance, LeaveType
from app.services import balance_service as ledger


def test_debit_casual_reduces_balance(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE, casual="5")
    ledger.debit(db, emp.id, LeaveType.CASUAL, Decimal("1.5"), actor_id=emp.id)
    db.commit()

    balance = get_balance(db, emp)
    assert balance.casual_balance == Decimal("3.5")
    assert balance.updated_by == emp.id
    assert balance.last_updated is not None


def test_debit_casual_insufficient_raises(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE, casual="1")

    with pytest.raises(InsufficientBalanceError) as exc:
        ledger.debit(db, emp.id, LeaveType.CASUAL, Decimal("2"))
    assert "Insufficient casual leave balance" in exc.value.message
    assert get_balance(db, emp).casual_balance == Decimal("1")


def test_debit_lop_never_checked_and_may_go_negative(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE, lop="2")
    ledger.debit(db, emp.id, LeaveType.LOP, Decimal("5"))
    db.commit()

    assert get_balance(db, emp).lop_balance == Decimal("-3")


def test_overdrawn_lop_refund_restores_exact_balance(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE, lop="2")
    ledger.debit(db, emp.id, LeaveType.LOP, Decimal("3"))
    ledger.credit(db, emp.id, LeaveType.LOP, Decimal("3"))
    db.commit()

    assert get_balance(db, emp).lop_balance == Decimal("2")


def test_credit_lop_clamped_at_cap(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE, lop="8")
    ledger.credit(db, emp.id, LeaveType.LOP, Decimal("5"))
    db.commit()

    assert get_balance(db, emp).lop_balance == Decimal("10")


def test_credit_casual_not_clamped(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE, casual="9")
    ledger.credit(db, emp.id, LeaveType.CASUAL, Decimal("5"))
    db.commit()

    assert get_balance(db, emp).casual_balance == Decimal("14")


def test_permission_is_not_on_the_ledger(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE, casual="1")

    assert ledger.debit(db, emp.id, LeaveType.PERMISSION, Decimal("3")) is None
    assert ledger.credit(db, emp.id, LeaveType.PERMISSION, Decimal("3")) is None


def test_apply_delta_signs(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE, sick="3")
    ledger.apply_delta(db, emp.id, LeaveType.SICK, Decimal("-2"))
    ledger.apply_delta(db, emp.id, LeaveType.SICK, Decimal("0.5"))
    db.commit()

    assert get_balance(db, emp).sick_balance == Decimal("1.5")


def test_missing_row_created_with_defaults(db: Session):
    emp = create_employee(db, "E1", Role.EMPLOYEE)

    balances = ledger.get_leave_balances(db, emp)

    assert balances == {"casual": 0.0, "sick": 0.0, "lop": 10.0}
    assert db.query(LeaveBalance).filter(LeaveBalance.employee_id == emp.id).count() == 1


def test_super_admin_sees_zero_balances(db: Session):
    admin = create_employee(db, "SA1", Role.SUPER_ADMIN)

    assert ledger.get_leave_balances(db, admin) == {"casual": 0.0, "sick": 0.0, "lop": 0.0}
    assert db.query(LeaveBalance).count() == 0
