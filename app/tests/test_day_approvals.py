"""
Tests for day-level approval and rejection
"""
from datetime import date

import pytest
from fastapi import status

from conftest import apply_for, auth_headers, get_balance


@pytest.fixture
def leave(client, org):
    """Pending casual leave of EMP001 over Mon 16th, Tue 17th and Wed 18th"""
    response = apply_for(client, org["employee"], "CASUAL", date(2026, 3, 16), date(2026, 3, 18))
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    return {"id": data["id"], "day_ids": [d["id"] for d in data["days"]]}


def _casual(db, org):
    return float(get_balance(db, org["employee"]).casual_balance)


def test_approve_single_day(client, org, leave):
    day_id = leave["day_ids"][0]
    response = client.post(
        f"/api/v1/leaves/{leave['id']}/days/{day_id}/approve",
        json={"comment": "First day is fine"},
        headers=auth_headers(org["manager"]),
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["current_status"] == "PARTIALLY_APPROVED"
    assert [d["day_status"] for d in data["days"]] == ["APPROVED", "PENDING", "PENDING"]
    assert data["manager_approval_status"] == "PENDING"


def test_approve_every_day_individually(client, org, leave):
    for day_id in leave["day_ids"]:
        response = client.post(
            f"/api/v1/leaves/{leave['id']}/days/{day_id}/approve",
            headers=auth_headers(org["hr"]),
        )
        assert response.status_code == status.HTTP_200_OK

    data = response.json()
    assert data["current_status"] == "APPROVED"
    assert data["hr_approval_status"] == "APPROVED"


def test_reject_single_day_refunds_its_weight(client, db, org, leave):
    day_id = leave["day_ids"][1]
    url = f"/api/v1/leaves/{leave['id']}/days/{day_id}/reject"

    response = client.post(url, json={"comment": "Need you on Tuesday"}, headers=auth_headers(org["manager"]))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["current_status"] == "PENDING"
    assert [d["day_status"] for d in data["days"]] == ["PENDING", "REJECTED", "PENDING"]
    assert _casual(db, org) == 3.0

    # rejecting it again changes nothing
    again = client.post(url, json={"comment": "Still no"}, headers=auth_headers(org["manager"]))
    assert again.status_code == status.HTTP_200_OK
    assert _casual(db, org) == 3.0

    detail = client.get(f"/api/v1/leaves/{leave['id']}", headers=auth_headers(org["employee"])).json()
    assert detail["rejection_reason"] == "Need you on Tuesday"
    assert float(detail["rejected_days"]) == 1.0
    assert float(detail["pending_days"]) == 2.0


def test_cannot_approve_rejected_day_or_reject_approved_day(client, org, leave):
    first, second = leave["day_ids"][:2]
    headers = auth_headers(org["manager"])
    client.post(f"/api/v1/leaves/{leave['id']}/days/{first}/approve", headers=headers)
    client.post(f"/api/v1/leaves/{leave['id']}/days/{second}/reject", json={"comment": "No"}, headers=headers)

    approve_rejected = client.post(f"/api/v1/leaves/{leave['id']}/days/{second}/approve", headers=headers)
    assert approve_rejected.status_code == status.HTTP_409_CONFLICT
    assert approve_rejected.json()["detail"] == "Cannot approve a rejected leave day"

    reject_approved = client.post(
        f"/api/v1/leaves/{leave['id']}/days/{first}/reject", json={"comment": "Changed my mind"}, headers=headers
    )
    assert reject_approved.status_code == status.HTTP_409_CONFLICT
    assert reject_approved.json()["detail"] == "Cannot reject an approved leave day"


def test_unknown_day_id(client, org, leave):
    response = client.post(
        f"/api/v1/leaves/{leave['id']}/days/99999/approve",
        headers=auth_headers(org["manager"]),
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Leave day not found"


def test_approve_selected_days_rejects_the_rest(client, db, org, leave):
    response = client.post(
        f"/api/v1/leaves/{leave['id']}/days/approve",
        json={"day_ids": [leave["day_ids"][0]], "comment": "Monday only"},
        headers=auth_headers(org["hr"]),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"approved": 1, "auto_rejected": 2, "status": "PARTIALLY_APPROVED"}
    assert _casual(db, org) == 4.0


def test_approve_all_listed_days(client, db, org, leave):
    response = client.post(
        f"/api/v1/leaves/{leave['id']}/days/approve",
        json={"day_ids": leave["day_ids"]},
        headers=auth_headers(org["hr"]),
    )

    assert response.json() == {"approved": 3, "auto_rejected": 0, "status": "APPROVED"}
    assert _casual(db, org) == 2.0


def test_approve_days_requires_a_selection(client, org, leave):
    response = client.post(
        f"/api/v1/leaves/{leave['id']}/days/approve",
        json={"day_ids": []},
        headers=auth_headers(org["hr"]),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "No days specified for approval"


def test_reject_listed_days(client, db, org, leave):
    response = client.post(
        f"/api/v1/leaves/{leave['id']}/days/reject",
        json={"day_ids": leave["day_ids"][:2], "comment": "Busy week"},
        headers=auth_headers(org["manager"]),
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"rejected": 2, "status": "PENDING"}
    assert _casual(db, org) == 4.0

    rest = client.post(
        f"/api/v1/leaves/{leave['id']}/days/reject",
        json={"day_ids": leave["day_ids"], "comment": "Busy week"},
        headers=auth_headers(org["manager"]),
    )
    assert rest.json() == {"rejected": 1, "status": "REJECTED"}
    assert _casual(db, org) == 5.0


def test_reject_days_requires_reason(client, org, leave):
    response = client.post(
        f"/api/v1/leaves/{leave['id']}/days/reject",
        json={"day_ids": leave["day_ids"], "comment": ""},
        headers=auth_headers(org["manager"]),
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_day_actions_follow_the_authorization_matrix(client, org, leave):
    day_id = leave["day_ids"][0]

    outsider = client.post(
        f"/api/v1/leaves/{leave['id']}/days/{day_id}/approve",
        headers=auth_headers(org["outsider_hr"]),
    )
    owner = client.post(
        f"/api/v1/leaves/{leave['id']}/days/{day_id}/reject",
        json={"comment": "Not needed"},
        headers=auth_headers(org["employee"]),
    )

    assert outsider.status_code == status.HTTP_403_FORBIDDEN
    assert owner.status_code == status.HTTP_403_FORBIDDEN
