# tests/api/test_grievances_api.py
import pytest

GRIEVANCE = {
    "title": "Quarters not allotted",
    "description": "Married accommodation pending for six months",
    "category": "accommodation",
    "priority": "high",
}


@pytest.fixture()
def grievance(client, officer_headers):
    r = client.post("/api/grievances", json=GRIEVANCE, headers=officer_headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_create_grievance_as_draft(grievance):
    assert grievance["stage"] == "Draft"
    assert grievance["grievance_id"].startswith("GRV")
    assert grievance["is_overdue"] is False
    assert grievance["available_transitions"] == ["submit"]


def test_create_and_submit_alerts_admins(client, officer_headers, admin, mail):
    r = client.post("/api/grievances", json={**GRIEVANCE, "submit": True}, headers=officer_headers)
    assert r.status_code == 201, r.text
    assert r.json()["stage"] == "Submitted"

    recipients = [m.to for m in mail.outbox]
    assert admin.email in recipients
    admin_mail = next(m for m in mail.outbox if m.to == admin.email)
    assert admin_mail.subject == "New Grievance Submitted - AFWMS"


def test_grievance_lifecycle(client, grievance, officer_headers, admin_headers, admin, mail):
    gid = grievance["id"]
    assert client.post(f"/api/grievances/{gid}/transitions/submit", headers=officer_headers).status_code == 200
    assert any(m.to == admin.email for m in mail.outbox)
    assert client.post(f"/api/grievances/{gid}/transitions/review", headers=admin_headers).status_code == 200
    r = client.post(
        f"/api/grievances/{gid}/transitions/resolve",
        json={"comment": "Quarter allotted"},
        headers=admin_headers,
    )
    assert r.status_code == 200, r.text

    body = client.get(f"/api/grievances/{gid}", headers=officer_headers).json()
    assert body["stage"] == "Resolved"
    assert body["resolution_details"] == "Quarter allotted"
    assert body["resolved_at"] is not None

    history = client.get(f"/api/grievances/{gid}/history", headers=officer_headers).json()
    assert [(h["from_stage"], h["to_stage"]) for h in history] == [
        ("Draft", "Submitted"),
        ("Submitted", "UnderReview"),
        ("UnderReview", "Resolved"),
    ]


def test_review_from_draft_is_409(client, grievance, admin_headers):
    r = client.post(f"/api/grievances/{grievance['id']}/transitions/review", headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["error"]["details"][0]["required_stage"] == "Submitted"


def test_submit_twice_is_409(client, grievance, officer_headers):
    client.post(f"/api/grievances/{grievance['id']}/transitions/submit", headers=officer_headers)
    r = client.post(f"/api/grievances/{grievance['id']}/transitions/submit", headers=officer_headers)
    assert r.status_code == 409


def test_owner_cannot_review(client, grievance, officer_headers):
    client.post(f"/api/grievances/{grievance['id']}/transitions/submit", headers=officer_headers)
    r = client.post(f"/api/grievances/{grievance['id']}/transitions/review", headers=officer_headers)
    assert r.status_code == 403


def test_other_user_is_forbidden(client, grievance, family_headers):
    assert client.get(f"/api/grievances/{grievance['id']}", headers=family_headers).status_code == 403
    assert client.get(f"/api/grievances/{grievance['id']}/history", headers=family_headers).status_code == 403


def test_missing_grievance(client, officer_headers):
    r = client.post("/api/grievances/grv_missing/transitions/submit", headers=officer_headers)
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


def test_list_filters(client, grievance, officer_headers, admin_headers):
    assert client.get("/api/grievances", headers=officer_headers).json()["total"] == 1
    assert client.get("/api/grievances?priority=low", headers=admin_headers).json()["total"] == 0
    assert client.get("/api/grievances?stage=Draft", headers=admin_headers).json()["total"] == 1


def test_categories(client, officer_headers):
    r = client.get("/api/grievances/categories", headers=officer_headers)
    assert r.status_code == 200
    assert "accommodation" in r.json()


def test_statistics(client, grievance, officer_headers, admin_headers):
    assert client.get("/api/grievances/statistics", headers=officer_headers).status_code == 403
    r = client.get("/api/grievances/statistics", headers=admin_headers)
    assert r.json()["by_stage"]["Draft"] == 1


def test_invalid_category_is_422(client, officer_headers):
    r = client.post("/api/grievances", json={**GRIEVANCE, "category": "parking"}, headers=officer_headers)
    assert r.status_code == 422


def test_admin_notice_escapes_grievance_title(client, officer_headers, admin, mail):
    body = {**GRIEVANCE, "title": "<img src=x onerror=alert(1)>", "submit": True}
    r = client.post("/api/grievances", json=body, headers=officer_headers)
    assert r.status_code == 201, r.text

    admin_mail = next(m for m in mail.outbox if m.to == admin.email)
    assert "<img" not in admin_mail.html
    assert "&lt;img src=x onerror=alert(1)&gt;" in admin_mail.html


def test_admin_assigns_grievance(client, grievance, admin, admin_headers, mail):
    r = client.put(f"/api/grievances/{grievance['id']}/assign", json={"assignee_id": admin.id}, headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["assigned_to"] == admin.id
    assert mail.outbox[-1].to == admin.email
    assert mail.outbox[-1].subject == "Grievance Assigned - AFWMS"


def test_assign_requires_admin_assignee(client, grievance, officer, admin_headers):
    r = client.put(f"/api/grievances/{grievance['id']}/assign", json={"assignee_id": officer.id}, headers=admin_headers)
    assert r.status_code == 400


def test_owner_cannot_assign(client, grievance, admin, officer_headers):
    r = client.put(f"/api/grievances/{grievance['id']}/assign", json={"assignee_id": admin.id}, headers=officer_headers)
    assert r.status_code == 403


def test_assign_missing_grievance(client, admin, admin_headers):
    r = client.put("/api/grievances/grv_missing/assign", json={"assignee_id": admin.id}, headers=admin_headers)
    assert r.status_code == 404


def test_communication_thread(client, grievance, officer, admin, officer_headers, admin_headers, mail):
    gid = grievance["id"]
    r = client.post(f"/api/grievances/{gid}/communications", json={"message": "Any update?"}, headers=officer_headers)
    assert r.status_code == 201, r.text
    assert r.json()["author_id"] == officer.id
    assert mail.outbox[-1].to == admin.email

    reply = client.post(
        f"/api/grievances/{gid}/communications",
        json={"message": "Allotment board meets Friday"},
        headers=admin_headers,
    )
    assert reply.status_code == 201
    assert mail.outbox[-1].to == officer.email
    assert "New response received" in mail.outbox[-1].text

    sent = len(mail.outbox)
    note = client.post(
        f"/api/grievances/{gid}/communications",
        json={"message": "Check quota with station HQ", "is_internal": True},
        headers=admin_headers,
    )
    assert note.status_code == 201
    assert len(mail.outbox) == sent

    owner_view = client.get(f"/api/grievances/{gid}/communications", headers=officer_headers).json()
    assert [m["message"] for m in owner_view] == ["Any update?", "Allotment board meets Friday"]
    admin_view = client.get(f"/api/grievances/{gid}/communications", headers=admin_headers).json()
    assert len(admin_view) == 3
    assert admin_view[-1]["is_internal"] is True


def test_submitter_reply_goes_to_assignee(client, grievance, engine, registry, admin, admin_headers, officer_headers, mail):
    from welfare.models import UserRole
    from welfare.repository import UserRepository
    from welfare.schemas import RegisterRequest

    other = UserRepository(engine, registry).create(
        "test-admin-002",
        RegisterRequest(email="desk.officer@armedforces.gov.in", first_name="Desk", last_name="Officer"),
        role=UserRole.admin,
    )
    client.put(f"/api/grievances/{grievance['id']}/assign", json={"assignee_id": other.id}, headers=admin_headers)
    mail.clear()

    client.post(f"/api/grievances/{grievance['id']}/communications", json={"message": "Ping"}, headers=officer_headers)
    assert [m.to for m in mail.outbox] == [other.email]


def test_owner_cannot_post_internal_note(client, grievance, officer_headers):
    r = client.post(
        f"/api/grievances/{grievance['id']}/communications",
        json={"message": "secret", "is_internal": True},
        headers=officer_headers,
    )
    assert r.status_code == 403


def test_stranger_cannot_read_thread(client, grievance, family_headers):
    r = client.get(f"/api/grievances/{grievance['id']}/communications", headers=family_headers)
    assert r.status_code == 403


def test_empty_message_is_422(client, grievance, officer_headers):
    r = client.post(f"/api/grievances/{grievance['id']}/communications", json={"message": ""}, headers=officer_headers)
    assert r.status_code == 422
