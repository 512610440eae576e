"""
API tests for project administration, team status and user projects.
"""

import pytest

from conftest import auth_headers

API = "/api/v1"


@pytest.fixture
def actors(owner, manager, validator, admin, project):
    return {
        "owner_id": str(owner.id),
        "validator_id": str(validator.id),
        "owner": auth_headers(owner),
        "validator": auth_headers(validator),
        "admin": auth_headers(admin),
    }


async def test_designated_validator_receives_submissions(test_client, actors):
    response = await test_client.post(
        f"{API}/projects", json={"name": "Borealis", "code": "bor-1"}, headers=actors["owner"]
    )
    assert response.status_code == 403

    response = await test_client.post(
        f"{API}/projects", json={"name": "Borealis", "code": "bor-1"}, headers=actors["admin"]
    )
    assert response.status_code == 201
    created = response.json()
    assert created["code"] == "BOR-1"
    project_id = created["id"]

    response = await test_client.put(
        f"{API}/projects/{project_id}/validators",
        json={"user_ids": [actors["owner_id"]]},
        headers=actors["admin"],
    )
    assert response.status_code == 409
    assert response.json()["error"]["type"] == "InvalidStateError"

    response = await test_client.put(
        f"{API}/projects/{project_id}/validators",
        json={"user_ids": [actors["validator_id"]]},
        headers=actors["admin"],
    )
    assert response.status_code == 200
    assert [v["id"] for v in response.json()["validators"]] == [actors["validator_id"]]

    response = await test_client.post(
        f"{API}/time-entries",
        json={"date": "2024-03-05", "duration": 90, "project_id": project_id},
        headers=actors["owner"],
    )
    assert response.status_code == 201
    timesheet_id = response.json()["timesheet_id"]
    response = await test_client.post(f"{API}/timesheets/{timesheet_id}/submit", headers=actors["owner"])
    assert response.status_code == 200

    response = await test_client.get(f"{API}/approvals", headers=actors["validator"])
    assert [a["timesheet_id"] for a in response.json()["items"]] == [timesheet_id]

    response = await test_client.get(f"{API}/projects/{project_id}", headers=actors["owner"])
    assert response.json()["spent_hours"] == 1.5

    response = await test_client.get(
        f"{API}/users/{actors['validator_id']}/projects", headers=actors["validator"]
    )
    assert response.status_code == 200
    assert {p["code"] for p in response.json()["validating"]} == {"APO", "BOR-1"}

    response = await test_client.get(
        f"{API}/users/{actors['validator_id']}/projects", headers=actors["owner"]
    )
    assert response.status_code == 403

    response = await test_client.delete(f"{API}/projects/{project_id}", headers=actors["admin"])
    assert response.json() == {"id": project_id, "deleted": False, "is_active": False}

    response = await test_client.get(
        f"{API}/audit-logs", params={"resource_type": "project_validators"}, headers=actors["admin"]
    )
    assert response.json()["total"] == 1


async def test_project_list_and_patch(test_client, actors):
    response = await test_client.get(f"{API}/projects", params={"q": "apo"}, headers=actors["owner"])
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    project_id = body["items"][0]["id"]

    response = await test_client.patch(
        f"{API}/projects/{project_id}", json={"name": None}, headers=actors["admin"]
    )
    assert response.status_code == 400

    response = await test_client.patch(
        f"{API}/projects/{project_id}", json={"description": "Lunar programme"}, headers=actors["admin"]
    )
    assert response.status_code == 200
    assert response.json()["description"] == "Lunar programme"

    response = await test_client.post(
        f"{API}/projects/{project_id}/sub-projects", json={"name": "Landing"}, headers=actors["admin"]
    )
    assert response.status_code == 201
    assert response.json()["project_id"] == project_id


async def test_team_status_endpoint(test_client, actors):
    response = await test_client.get(f"{API}/team/status", params={"week_of": "2024-03-06"}, headers=actors["owner"])
    assert response.status_code == 403

    response = await test_client.get(f"{API}/team/status", params={"week_of": "2024-03-06"}, headers=actors["admin"])
    assert response.status_code == 200
    body = response.json()
    assert (body["week_start"], body["week_end"]) == ("2024-03-04", "2024-03-10")
    assert actors["owner_id"] in {m["id"] for m in body["items"]}
