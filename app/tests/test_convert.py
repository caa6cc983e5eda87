"""
Tests for converting LOP requests to casual leave
"""
from datetime import date

import pytest
from fastapi import status

from conftest import apply_for, auth_headers, create_employee, get_balance
from app.models.employee import Role
from app.models.holiday import Holiday


@pytest.fixture
def lop_leave(client, db, org):
    """Pending LOP of EMP001, Tue 10th to Sat 14th: 5 LOP days (balance 10 -> 5)"""
    response = apply_for(client, org["employee"], "LOP", date(2026, 3, 10), date(2026, 3, 14))
    assert response.status_code == status.HTTP_201_CREATED
    assert float(get_balance(db, org["employee"]).lop_balance) == 5.0
    return response.json()


def _convert(client, leave_id, actor):
    return client.post(f"/api/v1/leaves/{leave_id}/convert-lop-to-casual", headers=auth_headers(actor))


def test_convert_recomputes_days_under_casual_rules(client, db, org, lop_leave):
    response = _convert(client, lop_leave["id"], org["hr"])

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["previous_casual_balance"] == 5.0
    assert data["new_casual_balance"] == 1.0
    assert data["previous_lop_balance"] == 5.0
    assert data["new_lop_balance"] == 10.0

    leave = data["leave_request"]
    assert leave["leave_type"] == "CASUAL"
    assert float(leave["no_of_days"]) == 4.0
    assert leave["current_status"] == "PENDING"
    # Saturday drops out for a regular employee
    assert [d["leave_date"] for d in leave["days"]] == ["2026-03-10", "2026-03-11", "2026-03-12", "2026-03-13"]
    assert {d["leave_type"] for d in leave["days"]} == {"CASUAL"}

    balance = get_balance(db, org["employee"])
    assert float(balance.casual_balance) == 1.0
    assert float(balance.lop_balance) == 10.0


def test_convert_drops_holidays(client, db, org, lop_leave):
    db.add(Holiday(year=2026, date=date(2026, 3, 11), name="Festival", active=True))
    db.commit()

    data = _convert(client, lop_leave["id"], org["super_admin"]).json()

    assert float(data["leave_request"]["no_of_days"]) == 3.0
    assert data["new_casual_balance"] == 2.0


def test_convert_needs_enough_casual_balance(client, db, org):
    worker = create_employee(db, "EMP050", Role.EMPLOYEE, manager=org["manager"], casual="2")
    leave_id = apply_for(client, worker, "LOP", date(2026, 3, 10), date(2026, 3, 14)).json()["id"]

    response = _convert(client, leave_id, org["hr"])

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Insufficient Casual leave balance. Available: 2.00, Required: 4"
    balance = get_balance(db, worker)
    assert float(balance.casual_balance) == 2.0
    assert float(balance.lop_balance) == 5.0


def test_only_lop_can_be_converted(client, org):
    leave_id = apply_for(client, org["employee"], "CASUAL", date(2026, 3, 12)).json()["id"]

    response = _convert(client, leave_id, org["hr"])

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Only LOP leave requests can be converted to Casual leave"


def test_only_pending_requests_convert(client, org, lop_leave):
    client.post(f"/api/v1/leaves/{lop_leave['id']}/approve", headers=auth_headers(org["hr"]))

    response = _convert(client, lop_leave["id"], org["hr"])

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"] == "Only pending leave requests can be converted"


def test_manager_cannot_convert(client, org, lop_leave):
    response = _convert(client, lop_leave["id"], org["manager"])

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Only HR or Super Admin can convert leave requests"


def test_convert_checks_casual_ceiling_after_debit(client, db, org):
    worker = create_employee(db, "EMP051", Role.EMPLOYEE, manager=org["manager"], casual="104")
    leave_id = apply_for(client, worker, "LOP", date(2026, 3, 10), date(2026, 3, 14)).json()["id"]

    response = _convert(client, leave_id, org["hr"])

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Casual leave balance would exceed the maximum of 99"
    db.expire_all()
    balance = get_balance(db, worker)
    assert float(balance.casual_balance) == 104.0
    assert float(balance.lop_balance) == 5.0
