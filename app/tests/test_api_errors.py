"""
Tests for authentication and the error envelope
"""
from datetime import date

from fastapi import status

from conftest import auth_headers, create_employee
from app.core.security import create_access_token
from app.models.employee import Role


def test_domain_error_envelope(client, org):
    response = client.get("/api/v1/leaves/4242", headers=auth_headers(org["employee"]))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    data = response.json()
    assert data["error"] is True
    assert data["status_code"] == 404
    assert data["kind"] == "NOT_FOUND"
    assert data["path"] == "/api/v1/leaves/4242"


def test_missing_token_rejected(client, org):
    response = client.get("/api/v1/leaves/my")

    assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


def test_garbage_token_rejected(client, org):
    response = client.get("/api/v1/leaves/my", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_token_for_unknown_employee(client, org):
    token = create_access_token({"sub": "99999"})
    response = client.get("/api/v1/leaves/my", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "User not found"


def test_inactive_employee_forbidden(client, db):
    retired = create_employee(db, "EMP070", Role.EMPLOYEE)
    retired.active = False
    db.commit()

    response = client.get("/api/v1/leaves/my", headers=auth_headers(retired))

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Inactive user"


def test_request_validation_envelope(client, org):
    response = client.post(
        "/api/v1/leaves/apply",
        json={"leave_type": "VACATION", "start_date": date(2026, 3, 12).isoformat()},
        headers=auth_headers(org["employee"]),
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    data = response.json()
    assert data["detail"] == "Validation error"
    assert {tuple(e["loc"]) for e in data["errors"]} >= {("body", "leave_type"), ("body", "end_date")}
