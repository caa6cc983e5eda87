"""
Tests for holiday calendar endpoints
"""
from datetime import date

import pytest
from fastapi import status
from sqlalchemy.orm import Session

from conftest import auth_headers
from app.models.audit_log import AuditLog
from app.models.holiday import Holiday
from app.services.holiday_service import get_holiday_map


@pytest.fixture
def holiday(db: Session):
    """Republic Day 2026"""
    row = Holiday(year=2026, date=date(2026, 1, 26), name="Republic Day", active=True)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def test_create_holiday_success(client, db, org):
    """HR creates a holiday and the change is audited"""
    response = client.post(
        "/api/v1/holidays",
        json={"year": 2026, "date": "2026-08-15", "name": "Independence Day", "active": True},
        headers=auth_headers(org["hr"]),
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["year"] == 2026
    assert data["date"] == "2026-08-15"
    assert data["name"] == "Independence Day"
    assert data["active"] is True
    assert db.query(AuditLog).filter(AuditLog.action == "HOLIDAY_CREATE").count() == 1


def test_create_holiday_duplicate_rejected(client, org, holiday):
    response = client.post(
        "/api/v1/holidays",
        json={"year": 2026, "date": "2026-01-26", "name": "Another"},
        headers=auth_headers(org["hr"]),
    )

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["kind"] == "CONFLICT"


def test_create_holiday_year_mismatch(client, org):
    response = client.post(
        "/api/v1/holidays",
        json={"year": 2025, "date": "2026-01-26", "name": "Republic Day"},
        headers=auth_headers(org["hr"]),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "does not fall within year 2025" in response.json()["detail"]


def test_create_holiday_employee_forbidden(client, org):
    response = client.post(
        "/api/v1/holidays",
        json={"year": 2026, "date": "2026-01-26", "name": "Republic Day"},
        headers=auth_headers(org["employee"]),
    )

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_super_admin_can_manage_holidays(client, org):
    response = client.post(
        "/api/v1/holidays",
        json={"year": 2026, "date": "2026-10-02", "name": "Gandhi Jayanti"},
        headers=auth_headers(org["super_admin"]),
    )

    assert response.status_code == status.HTTP_201_CREATED


def test_list_holidays_filters(client, db, org, holiday):
    db.add(Holiday(year=2026, date=date(2026, 3, 10), name="Festival", active=False))
    db.add(Holiday(year=2027, date=date(2027, 1, 26), name="Republic Day", active=True))
    db.commit()
    headers = auth_headers(org["employee"])

    all_2026 = client.get("/api/v1/holidays", params={"year": 2026}, headers=headers).json()
    active_2026 = client.get(
        "/api/v1/holidays", params={"year": 2026, "active_only": True}, headers=headers
    ).json()

    assert [h["date"] for h in all_2026] == ["2026-01-26", "2026-03-10"]
    assert [h["date"] for h in active_2026] == ["2026-01-26"]


def test_update_holiday_moves_year_with_date(client, org, holiday):
    response = client.patch(
        f"/api/v1/holidays/{holiday.id}",
        json={"date": "2027-01-26", "active": False},
        headers=auth_headers(org["hr"]),
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["year"] == 2027
    assert data["date"] == "2027-01-26"
    assert data["active"] is False
    assert data["name"] == "Republic Day"


def test_update_holiday_onto_taken_date(client, db, org, holiday):
    other = Holiday(year=2026, date=date(2026, 8, 15), name="Independence Day", active=True)
    db.add(other)
    db.commit()

    response = client.patch(
        f"/api/v1/holidays/{other.id}",
        json={"date": "2026-01-26"},
        headers=auth_headers(org["hr"]),
    )

    assert response.status_code == status.HTTP_409_CONFLICT


def test_delete_holiday(client, db, org, holiday):
    response = client.delete(f"/api/v1/holidays/{holiday.id}", headers=auth_headers(org["hr"]))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["message"] == "Holiday deleted successfully"
    assert db.query(Holiday).count() == 0


def test_get_missing_holiday(client, org):
    response = client.get("/api/v1/holidays/999", headers=auth_headers(org["employee"]))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["kind"] == "NOT_FOUND"


def test_holiday_map_ignores_inactive(db: Session):
    db.add(Holiday(year=2026, date=date(2026, 3, 10), name="Festival", active=True))
    db.add(Holiday(year=2026, date=date(2026, 3, 11), name="Cancelled", active=False))
    db.commit()

    assert get_holiday_map(db, date(2026, 3, 1), date(2026, 3, 31)) == {date(2026, 3, 10): "Festival"}
