"""
End-to-end API tests: entries, submission, decisions, reopen and audit.

A failed request rolls the shared test session back and expires every
loaded instance, so ids and headers are captured before the first call.
"""

import pytest

from conftest import auth_headers
from timesheet_manager.core.security import AuthState

API = "/api/v1"


@pytest.fixture
def actors(owner, manager, validator, admin, project):
    return {
        "owner_id": str(owner.id),
        "project_id": str(project.id),
        "owner": auth_headers(owner),
        "validator": auth_headers(validator),
        "admin": auth_headers(admin),
        "pending": auth_headers(owner, AuthState.SECOND_FACTOR_PENDING),
        "unenrolled": auth_headers(owner, AuthState.CREDENTIAL_VERIFIED),
    }


async def _log_day(client, actors, day, minutes=240):
    response = await client.post(
        f"{API}/time-entries",
        json={"date": day, "duration": minutes, "project_id": actors["project_id"]},
        headers=actors["owner"],
    )
    assert response.status_code == 201
    return response.json()


async def test_full_approval_cycle(test_client, actors):
    await _log_day(test_client, actors, "2024-03-04")
    await _log_day(test_client, actors, "2024-03-06")

    response = await test_client.get(f"{API}/timesheets", headers=actors["owner"])
    assert response.status_code == 200
    sheet = response.json()["items"][0]
    assert sheet["status"] == "DRAFT"
    assert sheet["total_hours"] == 8.0
    timesheet_id = sheet["id"]

    response = await test_client.post(f"{API}/timesheets/{timesheet_id}/submit", headers=actors["owner"])
    assert response.status_code == 200
    assert response.json()["status"] == "SUBMITTED"

    # Entries are frozen once submitted
    response = await test_client.post(
        f"{API}/time-entries",
        json={"date": "2024-03-05", "duration": 30, "project_id": actors["project_id"]},
        headers=actors["owner"],
    )
    assert response.status_code == 409
    assert response.json()["error"]["type"] == "LockedError"

    response = await test_client.get(f"{API}/approvals", headers=actors["validator"])
    queue = response.json()
    assert queue["total"] == 1
    assert queue["items"][0]["timesheet_id"] == timesheet_id

    response = await test_client.post(
        f"{API}/approvals",
        json={"timesheet_id": timesheet_id, "status": "REJECTED"},
        headers=actors["validator"],
    )
    assert response.status_code == 400
    assert response.json()["error"]["type"] == "MissingRejectionReasonError"

    response = await test_client.post(
        f"{API}/approvals",
        json={"timesheet_id": timesheet_id, "status": "APPROVED"},
        headers=actors["validator"],
    )
    assert response.status_code == 200
    assert response.json()["status"] == "APPROVED"

    response = await test_client.get(f"{API}/timesheets/{timesheet_id}", headers=actors["owner"])
    body = response.json()
    assert body["status"] == "APPROVED"
    assert body["locked_at"] is not None
    assert len(body["entries"]) == 2

    response = await test_client.get(f"{API}/timesheets/{timesheet_id}/integrity", headers=actors["owner"])
    report = response.json()
    assert report["submission_valid"] is True
    assert [d["valid"] for d in report["decisions"]] == [True]

    response = await test_client.post(f"{API}/timesheets/{timesheet_id}/reopen", headers=actors["owner"])
    assert response.status_code == 403
    assert response.json()["error"]["type"] == "ForbiddenError"

    response = await test_client.post(
        f"{API}/timesheets/{timesheet_id}/reopen",
        json={"comment": "Split Wednesday across projects"},
        headers=actors["admin"],
    )
    assert response.status_code == 200
    assert response.json()["status"] == "REOPENED"
    assert response.json()["locked_at"] is None

    response = await test_client.get(f"{API}/notifications", headers=actors["owner"])
    types = {n["type"] for n in response.json()["items"]}
    assert types == {"TIMESHEET_APPROVED", "TIMESHEET_REOPENED"}


async def test_second_decision_conflicts(test_client, actors):
    await _log_day(test_client, actors, "2024-03-04")
    timesheet_id = (await test_client.get(f"{API}/timesheets", headers=actors["owner"])).json()["items"][0]["id"]
    await test_client.post(f"{API}/timesheets/{timesheet_id}/submit", headers=actors["owner"])

    decision = {"timesheet_id": timesheet_id, "status": "REJECTED", "comment": "Wrong project"}
    first = await test_client.post(f"{API}/approvals", json=decision, headers=actors["validator"])
    second = await test_client.post(f"{API}/approvals", json=decision, headers=actors["validator"])

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["error"]["type"] == "AlreadyDecidedError"


async def test_empty_submission_is_rejected(test_client, actors):
    response = await test_client.post(
        f"{API}/timesheets", json={"week_start": "2024-03-06"}, headers=actors["owner"]
    )
    assert response.json()["week_start"] == "2024-03-04"
    timesheet_id = response.json()["id"]

    response = await test_client.post(f"{API}/timesheets/{timesheet_id}/submit", headers=actors["owner"])

    assert response.status_code == 400
    assert response.json()["error"]["type"] == "EmptySubmissionError"


async def test_invalid_entry_returns_validation_error(test_client, actors):
    response = await test_client.post(
        f"{API}/time-entries",
        json={"date": "2024-03-04", "duration": 0, "project_id": actors["project_id"]},
        headers=actors["owner"],
    )

    assert response.status_code == 422


async def test_pending_session_is_limited_to_second_factor_routes(test_client, actors):
    response = await test_client.get(f"{API}/timesheets", headers=actors["pending"])
    assert response.status_code == 403
    assert response.json()["error"]["type"] == "SecondFactorRequiredError"

    response = await test_client.get(f"{API}/timesheets", headers=actors["unenrolled"])
    assert response.status_code == 403
    assert response.json()["error"]["details"] == {"auth_state": "CREDENTIAL_VERIFIED"}

    response = await test_client.post(f"{API}/auth/totp/setup", headers=actors["unenrolled"])
    assert response.status_code == 200
    assert response.json()["provisioning_uri"].startswith("otpauth://")


async def test_missing_or_bad_token(test_client):
    response = await test_client.get(f"{API}/timesheets")
    assert response.status_code in (401, 403)

    response = await test_client.get(f"{API}/timesheets", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


async def test_audit_log_is_admin_only_and_verifiable(test_client, actors):
    await _log_day(test_client, actors, "2024-03-04")

    response = await test_client.get(f"{API}/audit-logs", headers=actors["owner"])
    assert response.status_code == 403

    response = await test_client.get(
        f"{API}/audit-logs", params={"resource_type": "time_entry"}, headers=actors["admin"]
    )
    assert response.status_code == 200
    records = response.json()["items"]
    assert len(records) == 1
    assert records[0]["action"] == "CREATE"
    assert records[0]["user_id"] == actors["owner_id"]

    response = await test_client.get(f"{API}/audit-logs/{records[0]['id']}/verify", headers=actors["admin"])
    assert response.json() == {"id": records[0]["id"], "valid": True}


async def test_me(test_client, actors):
    response = await test_client.get(f"{API}/users/me", headers=actors["owner"])

    assert response.status_code == 200
    assert response.json()["id"] == actors["owner_id"]
    assert "totp_secret" not in response.json()


@pytest.mark.parametrize(
    "forwarded, recorded",
    [
        ("a" * 120, "127.0.0.1"),
        ("not-an-address, 10.0.0.9", "127.0.0.1"),
        ("203.0.113.7, 10.0.0.9", "203.0.113.7"),
    ],
)
async def test_forwarded_for_header_is_validated(test_client, actors, forwarded, recorded):
    response = await test_client.post(
        f"{API}/time-entries",
        json={"date": "2024-03-04", "duration": 60, "project_id": actors["project_id"]},
        headers={**actors["owner"], "X-Forwarded-For": forwarded},
    )
    assert response.status_code == 201

    response = await test_client.get(
        f"{API}/audit-logs", params={"resource_type": "time_entry"}, headers=actors["admin"]
    )
    records = response.json()["items"]
    assert len(records) == 1
    assert records[0]["ip"] == recorded


async def test_list_totals_count_every_matching_row(test_client, actors):
    await _log_day(test_client, actors, "2024-03-04")
    await _log_day(test_client, actors, "2024-03-11")
    sheets = (await test_client.get(f"{API}/timesheets", headers=actors["owner"])).json()["items"]
    for sheet in sheets:
        await test_client.post(f"{API}/timesheets/{sheet['id']}/submit", headers=actors["owner"])

    page = (await test_client.get(f"{API}/timesheets", params={"limit": 1}, headers=actors["owner"])).json()
    assert (len(page["items"]), page["total"]) == (1, 2)

    page = (await test_client.get(f"{API}/approvals", params={"limit": 1}, headers=actors["validator"])).json()
    assert (len(page["items"]), page["total"]) == (1, 2)

    page = (await test_client.get(f"{API}/notifications", params={"limit": 1}, headers=actors["validator"])).json()
    assert (len(page["items"]), page["total"]) == (1, 2)
