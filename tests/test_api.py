import asyncio
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

import marketplace.api.deps as deps
from conftest import FakeProvider, make_user, seed
from marketplace import config
from marketplace.main import app

STUDENT = {"X-User-Id": "student-0001"}
ADMIN = {"X-User-Id": "admin-0001"}


@pytest.fixture
def provider():
    return FakeProvider(status="COMPLETED")


@pytest.fixture
def client(session_factory, provider, monkeypatch):
    monkeypatch.setattr(deps, "SessionLocal", session_factory)
    app.dependency_overrides[deps.get_payment_provider] = lambda: provider
    asyncio.run(seed(session_factory, make_user("admin-0001", role="admin", name="Ops")))
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def _submission(**overrides):
    body = {
        "assignment_type": "Essay",
        "course_name": "Modern History",
        "class_name": "11B",
        "teacher_name": "Mr Brown",
        "due_date": (date.today() + timedelta(days=10)).isoformat(),
        "platform": "WhatsApp",
        "platform_contact": "+44 7700 900123",
        "description": "A short basic essay on the Industrial Revolution",
        "files": [{"name": "brief.pdf", "size": 1024, "type": "application/pdf"}],
    }
    body.update(overrides)
    return body


def _register(client):
    return client.post(
        "/api/register",
        json={"name": "Ada Student", "email": "ada@example.com", "school_level": "High"},
        headers=STUDENT,
    )


def test_register_is_idempotent(client):
    first = _register(client)
    second = _register(client)

    assert first.json()["message"] == "✅ User registered"
    assert second.json()["message"] == "👤 User already exists"

    profile = client.get("/api/profile", headers=STUDENT).json()
    assert profile["school_level"] == "High"
    assert profile["role"] == "user"

    updated = client.patch("/api/profile", json={"department": "Humanities"}, headers=STUDENT)
    assert updated.json()["department"] == "Humanities"


def test_identity_is_required(client):
    assert client.get("/api/profile").status_code == 401
    assert client.get("/api/profile", headers={"X-User-Id": "nobody"}).status_code == 401


def test_submission_is_validated(client):
    _register(client)

    response = client.post("/api/assignments", json=_submission(platform="Fax"), headers=STUDENT)

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


def test_quote_does_not_store_anything(client):
    _register(client)

    response = client.post(
        "/api/pricing/quote",
        json={"assignment_type": "Thesis", "description": "", "school_level": "University"},
        headers=STUDENT,
    )

    assert response.status_code == 200
    assert response.json()["complexity"] == "high"
    assert client.get("/api/assignments", headers=STUDENT).json()["count"] == 0


def test_full_order_flow(client, provider):
    _register(client)

    created = client.post("/api/assignments", json=_submission(), headers=STUDENT)
    assert created.status_code == 201
    assignment = created.json()
    assert assignment["status"] == "pending"
    assert assignment["files"][0]["name"] == "brief.pdf"

    analyzed = client.post(f"/api/assignments/{assignment['id']}/analyze", headers=STUDENT).json()
    assert analyzed["assignment"]["status"] == "analyzed"
    assert analyzed["decision"]["complexity"] == "low"
    assert analyzed["decision"]["price"] == 24.0

    initiated = client.post(
        "/api/payments/initiate",
        json={"assignment_id": assignment["id"], "amount": 24.0},
        headers=STUDENT,
    )
    assert initiated.status_code == 201
    reference = initiated.json()["transaction_reference"]
    assert initiated.json()["provider_available"] is True

    verified = client.post("/api/payments/verify", json={"transaction_reference": reference}, headers=STUDENT)
    assert verified.json()["success"] is True

    payment = client.get(f"/api/payments/{reference}", headers=STUDENT).json()
    assert payment["status"] == "completed"
    assert payment["amount"] == 24.0

    stored = client.get(f"/api/assignments/{assignment['id']}", headers=STUDENT).json()
    assert stored["status"] == "submitted"
    assert stored["payment_id"] == payment["id"]

    stats = client.get("/admin/stats", headers=ADMIN).json()
    assert stats["total_users"] == 2
    assert stats["total_revenue"] == 24.0
    assert stats["assignments_by_status"] == {"submitted": 1}

    done = client.post(
        f"/admin/assignments/{assignment['id']}/status",
        json={"status": "completed", "notes": "Delivered"},
        headers=ADMIN,
    )
    assert done.json()["status"] == "completed"

    logs = client.get("/admin/logs", headers=ADMIN).json()
    assert logs[0]["type"] == "admin_action"
    assert logs[0]["metadata"]["to"] == "completed"
    assert {log["type"] for log in logs} >= {
        "user_registered",
        "assignment_created",
        "assignment_analyzing",
        "assignment_analyzed",
        "payment_initiated",
        "payment_completed",
    }


def test_paying_for_an_unpriced_assignment_is_refused(client):
    _register(client)
    assignment = client.post("/api/assignments", json=_submission(), headers=STUDENT).json()

    response = client.post(
        "/api/payments/initiate", json={"assignment_id": assignment["id"]}, headers=STUDENT
    )

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransition"


def test_admin_routes_are_admin_only(client):
    _register(client)

    response = client.get("/admin/stats", headers=STUDENT)

    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"


def test_admin_search_and_message(client):
    _register(client)
    assignment = client.post("/api/assignments", json=_submission(), headers=STUDENT).json()

    page = client.get("/admin/assignments", params={"q": "history"}, headers=ADMIN).json()
    assert page["count"] == 1
    assert page["data"][0]["id"] == assignment["id"]
    assert client.get("/admin/assignments", params={"status": "paid"}, headers=ADMIN).json()["count"] == 0

    contact = client.post(
        f"/admin/assignments/{assignment['id']}/message", json={"text": "Hi Ada"}, headers=ADMIN
    ).json()
    assert contact["platform"] == "WhatsApp"
    assert contact["link"] == "https://wa.me/447700900123?text=Hi%20Ada"
    assert contact["delivered"] is False

    users = client.get("/admin/users", headers=ADMIN).json()
    assert {u["id"] for u in users} == {"student-0001", "admin-0001"}


def test_verification_timeout_report_and_webhook(client, monkeypatch):
    monkeypatch.setattr(config, "SUPPORT_WHATSAPP", "+44 7700 900999")
    _register(client)
    assignment = client.post("/api/assignments", json=_submission(), headers=STUDENT).json()
    client.post(f"/api/assignments/{assignment['id']}/analyze", headers=STUDENT)
    reference = client.post(
        "/api/payments/initiate", json={"assignment_id": assignment["id"]}, headers=STUDENT
    ).json()["transaction_reference"]

    report = client.post(
        "/api/payments/verification-timeout",
        json={"transaction_reference": reference, "attempts": 120},
        headers=STUDENT,
    )
    assert report.json()["status"] == "recorded"
    assert reference in report.json()["message"]
    assert "or WhatsApp +44 7700 900999" in report.json()["message"]

    ignored = client.post("/api/payments/webhook", json={"object": {"metadata": {}}})
    assert ignored.status_code == 200
    assert ignored.json()["status"].startswith("ignored")

    settled = client.post("/api/payments/webhook", json={"reference": reference})
    assert settled.json()["status"] == "completed"

    logs = client.get("/admin/logs", params={"type": "payment_verification_timeout"}, headers=ADMIN).json()
    assert len(logs) == 1
    assert logs[0]["metadata"]["attempts"] == 120
