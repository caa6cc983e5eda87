"""
Tests for approval chain resolution and the authorization matrix
"""
import pytest
from sqlalchemy.orm import Session

from conftest import create_employee
from app.core.errors import ForbiddenError
from app.models.employee import Role
from app.services.hierarchy_service import (
    authorize_action,
    can_act_on,
    can_edit,
    can_view,
    is_terminal_approver,
    next_approver,
    resolve_chain,
)


def test_resolve_chain_walks_three_levels(db: Session, org):
    chain = resolve_chain(db, org["employee"].id)

    assert [m.emp_code for m in chain] == ["MGR001", "HR001", "SA001"]


def test_resolve_chain_depth_and_short_chains(db: Session, org):
    assert [m.emp_code for m in resolve_chain(db, org["employee"].id, depth=2)] == ["MGR001", "HR001"]
    assert [m.emp_code for m in resolve_chain(db, org["hr"].id)] == ["SA001"]
    assert resolve_chain(db, org["super_admin"].id) == []


def test_resolve_chain_stops_on_cycle(db: Session):
    first = create_employee(db, "C1", Role.MANAGER)
    second = create_employee(db, "C2", Role.MANAGER, manager=first)
    first.reporting_manager_id = second.id
    db.commit()

    assert [m.emp_code for m in resolve_chain(db, first.id)] == ["C2"]


def test_manager_acts_on_direct_reports_only(db: Session, org):
    manager = org["manager"]
    assert can_act_on(manager, org["employee"], resolve_chain(db, org["employee"].id))

    nested = create_employee(db, "EMP002", Role.EMPLOYEE, manager=org["employee"])
    assert not can_act_on(manager, nested, resolve_chain(db, nested.id))


def test_hr_acts_on_l1_or_l2_of_non_hr_staff(db: Session, org):
    hr = org["hr"]
    # HR is L2 of the employee and L1 of the manager
    assert can_act_on(hr, org["employee"], resolve_chain(db, org["employee"].id))
    assert can_act_on(hr, org["manager"], resolve_chain(db, org["manager"].id))

    # not in the chain
    assert not can_act_on(org["outsider_hr"], org["employee"], resolve_chain(db, org["employee"].id))

    # HR never acts on HR
    junior_hr = create_employee(db, "HR003", Role.HR, manager=hr)
    assert not can_act_on(hr, junior_hr, resolve_chain(db, junior_hr.id))


def test_hr_is_l3_only_is_not_enough(db: Session, org):
    lead = create_employee(db, "MGR002", Role.MANAGER, manager=org["manager"])
    worker = create_employee(db, "EMP003", Role.EMPLOYEE, manager=lead)

    # chain: MGR002, MGR001, HR001
    assert not can_act_on(org["hr"], worker, resolve_chain(db, worker.id))


def test_super_admin_acts_on_everyone_but_self(db: Session, org):
    admin = org["super_admin"]
    assert can_act_on(admin, org["hr"], resolve_chain(db, org["hr"].id))
    assert not can_act_on(admin, admin, [])


def test_authorize_action_messages(db: Session, org):
    with pytest.raises(ForbiddenError, match="Cannot approve your own leave request"):
        authorize_action(db, org["manager"], org["manager"])
    with pytest.raises(ForbiddenError, match="Not authorized to reject leaves"):
        authorize_action(db, org["intern"], org["employee"], "reject")
    with pytest.raises(ForbiddenError, match="Not authorized to approve this leave"):
        authorize_action(db, org["outsider_hr"], org["employee"])

    chain = authorize_action(db, org["hr"], org["employee"])
    assert [m.id for m in chain] == [org["manager"].id, org["hr"].id, org["super_admin"].id]


def test_view_and_edit_access(db: Session, org):
    employee = org["employee"]

    assert can_view(db, employee, employee)
    assert can_view(db, org["super_admin"], employee)
    assert can_view(db, org["manager"], employee)
    assert not can_view(db, org["intern"], employee)
    assert not can_view(db, org["outsider_hr"], employee)

    assert can_edit(db, org["hr"], employee)
    assert not can_edit(db, org["outsider_hr"], employee)
    assert not can_edit(db, org["intern"], employee)


def test_terminal_tier(db: Session, org):
    chain = resolve_chain(db, org["employee"].id)

    assert is_terminal_approver(org["hr"], chain)
    assert is_terminal_approver(org["super_admin"], chain)
    assert not is_terminal_approver(org["manager"], chain)
    assert next_approver(org["manager"], chain).id == org["hr"].id


def test_manager_without_escalation_is_terminal(db: Session):
    manager = create_employee(db, "MGR009", Role.MANAGER)
    worker = create_employee(db, "EMP009", Role.EMPLOYEE, manager=manager)
    chain = resolve_chain(db, worker.id)

    assert is_terminal_approver(manager, chain)
    assert next_approver(manager, chain) is None
