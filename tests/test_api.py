import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from benefits_enrollment.api.dependencies import api_key_protection
from benefits_enrollment.api.main import build_services, create_app
from benefits_enrollment.contracts.interfaces import AuditAction, Role
from benefits_enrollment.database.postgres import PostgresDB
from benefits_enrollment.database.redis import RedisCache


def hdr(actor, **extra):
    return {"X-User-Id": actor.id, **extra}


@pytest.fixture
def services(db, rating_config):
    return build_services(store=db, cache=RedisCache(), rating_config=rating_config, submissions_per_hour=10)


@pytest.fixture
def client(services, monkeypatch):
    monkeypatch.delenv("API_KEYS", raising=False)
    monkeypatch.delenv("TRUSTED_PROXIES", raising=False)
    return TestClient(create_app(services))


@pytest.fixture
def created(client, employer):
    response = client.post("/api/v1/companies", json={"name": "Acme Widgets", "zip_code": "94102"}, headers=hdr(employer))
    assert response.status_code == 201
    return response.json()


QUOTE_PAYLOAD = {
    "zip_code": "94102",
    "effective_date": "2025-01-01",
    "people": [{"first_name": "Pat", "last_name": "Doe", "date_of_birth": "1990-01-01"}],
    "coverage_types": ["medical"],
}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == {"store": True, "cache": True}
    assert body["timestamp"].endswith("+00:00")


def test_rating_areas_and_carriers(client):
    areas = client.get("/api/v1/rating-areas").json()["rating_areas"]
    assert len(areas) == 19
    carriers = client.get("/api/v1/carriers").json()["carriers"]
    assert {"id": "vsp", "name": "VSP", "coverage_types": ["vision"], "network": "Choice"} in carriers


def test_generate_quote(client, employer):
    response = client.post("/api/v1/quotes/generate", json=QUOTE_PAYLOAD, headers=hdr(employer))
    assert response.status_code == 200
    body = response.json()
    assert body["rating_area"] == 3
    assert len(body["offers"]) == 15
    assert body["offers"][0] == {
        "carrier_id": "aetna",
        "plan_label": "Aetna Bronze PPO",
        "coverage_type": "medical",
        "metal_tier": "Bronze",
        "monthly_premium": 52020,
        "deductible": 650000,
        "out_of_pocket_max": 890000,
        "network": "PPO",
        "rating_area": 3,
    }


def test_quote_requires_identity(client):
    assert client.post("/api/v1/quotes/generate", json=QUOTE_PAYLOAD).status_code == 401
    response = client.post("/api/v1/quotes/generate", json=QUOTE_PAYLOAD, headers={"X-User-Id": "ghost"})
    assert response.status_code == 401


@pytest.mark.parametrize(
    "override",
    [{"zip_code": "941"}, {"coverage_types": []}, {"coverage_types": ["pet"]}],
)
def test_invalid_quote_request(client, employer, override):
    response = client.post("/api/v1/quotes/generate", json={**QUOTE_PAYLOAD, **override}, headers=hdr(employer))
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_request"


def test_create_company_returns_not_started_application(created, employer):
    assert created["company"]["owner_user_id"] == employer.id
    assert created["application"]["status"] == "not_started"
    assert created["application"]["current_step"] == "application-initiator"
    assert created["application"]["signed"] is False


def test_step_flow_through_company_and_application(client, employer, created):
    company_id = created["company"]["id"]
    app_id = created["application"]["id"]

    r1 = client.post(f"/api/v1/companies/{company_id}/steps/application-initiator", headers=hdr(employer))
    assert r1.status_code == 200
    assert r1.json()["current_step"] == "company-information"

    r2 = client.post(f"/api/v1/applications/{app_id}/steps/company-information", headers=hdr(employer))
    assert r2.json()["completed_steps"] == ["application-initiator", "company-information"]

    r3 = client.get(f"/api/v1/companies/{company_id}/application", headers=hdr(employer))
    assert r3.json()["current_step"] == "ownership-info"
    assert r3.json()["status"] == "in_progress"


def test_unknown_step_is_bad_request(client, employer, created):
    app_id = created["application"]["id"]
    response = client.post(f"/api/v1/applications/{app_id}/steps/payment", headers=hdr(employer))
    assert response.status_code == 400


def test_outsider_gets_same_response_as_missing(client, other_employer, created):
    app_id = created["application"]["id"]
    denied = client.get(f"/api/v1/applications/{app_id}", headers=hdr(other_employer))
    missing = client.get("/api/v1/applications/does-not-exist", headers=hdr(other_employer))

    assert denied.status_code == missing.status_code == 404
    assert denied.json() == missing.json() == {"code": "not_found", "message": "Resource not found"}


def test_broker_staff_reads_broker_application(client, broker_staff, created):
    app_id = created["application"]["id"]
    assert client.get(f"/api/v1/applications/{app_id}", headers=hdr(broker_staff)).status_code == 200


def test_signature_flow(client, db, employer, created):
    app_id = created["application"]["id"]
    url = f"/api/v1/applications/{app_id}/signature"

    missing = client.post(url, json={"signature": "  "}, headers=hdr(employer))
    assert missing.status_code == 400
    assert missing.json()["code"] == "missing_signature"

    signed = client.post(url, json={"signature": "Jane Employer"}, headers=hdr(employer, **{"User-Agent": "pytest"}))
    assert signed.status_code == 200
    assert signed.json()["application"]["status"] == "submitted"
    assert signed.json()["application"]["current_step"] == "review"

    again = client.post(url, json={"signature": ""}, headers=hdr(employer))
    assert again.status_code == 409
    assert again.json()["code"] == "already_submitted"

    signs = [e for e in db.list_audit_entries() if e.action == AuditAction.APPLICATION_SIGN]
    assert len(signs) == 1
    assert signs[0].user_agent == "pytest"


def test_signature_checks_csrf_token_when_session_is_sent(client, employer, created):
    app_id = created["application"]["id"]
    url = f"/api/v1/applications/{app_id}/signature"
    session = {"X-Session-Id": "sess-1"}

    rejected = client.post(url, json={"signature": "Jane"}, headers=hdr(employer, **session, **{"X-CSRF-Token": "nope"}))
    assert rejected.status_code == 403

    token = client.get("/api/v1/security/csrf-token", headers=hdr(employer, **session)).json()["csrf_token"]
    accepted = client.post(url, json={"signature": "Jane"}, headers=hdr(employer, **session, **{"X-CSRF-Token": token}))
    assert accepted.status_code == 200


def test_csrf_token_requires_session_header(client, employer):
    assert client.get("/api/v1/security/csrf-token", headers=hdr(employer)).status_code == 400


def test_submission_rate_limit(db, rating_config, employer, monkeypatch):
    monkeypatch.delenv("API_KEYS", raising=False)
    services = build_services(store=db, cache=RedisCache(), rating_config=rating_config, submissions_per_hour=1)
    client = TestClient(create_app(services))
    _, first = services.controller.create_company(employer, "First Co")
    _, second = services.controller.create_company(employer, "Second Co")

    ok = client.post(f"/api/v1/applications/{first.id}/signature", json={"signature": "Jane"}, headers=hdr(employer))
    assert ok.status_code == 200
    limited = client.post(f"/api/v1/applications/{second.id}/signature", json={"signature": "Jane"}, headers=hdr(employer))
    assert limited.status_code == 429


def test_blocked_ip_is_rejected_everywhere(client, services, employer):
    # TestClient connects from the peer address "testclient"
    services.ip_block_list.block("testclient", reason="abuse")
    assert client.get("/health").status_code == 403
    assert client.get("/api/v1/carriers", headers=hdr(employer)).status_code == 403


def test_forwarded_header_cannot_dodge_the_block_list(client, services):
    services.ip_block_list.block("testclient", reason="abuse")
    assert client.get("/health", headers={"X-Forwarded-For": "1.2.3.4"}).status_code == 403


def test_forwarded_header_cannot_reset_the_submission_limit(db, rating_config, employer, monkeypatch):
    monkeypatch.delenv("API_KEYS", raising=False)
    services = build_services(store=db, cache=RedisCache(), rating_config=rating_config, submissions_per_hour=1)
    client = TestClient(create_app(services))
    _, first = services.controller.create_company(employer, "First Co")
    _, second = services.controller.create_company(employer, "Second Co")

    ok = client.post(
        f"/api/v1/applications/{first.id}/signature",
        json={"signature": "Jane"},
        headers=hdr(employer, **{"X-Forwarded-For": "1.1.1.1"}),
    )
    assert ok.status_code == 200
    limited = client.post(
        f"/api/v1/applications/{second.id}/signature",
        json={"signature": "Jane"},
        headers=hdr(employer, **{"X-Forwarded-For": "2.2.2.2"}),
    )
    assert limited.status_code == 429


def test_trusted_proxy_supplies_the_client_address(services, monkeypatch):
    monkeypatch.delenv("API_KEYS", raising=False)
    client = TestClient(create_app(services, trusted_proxies="*"))
    services.ip_block_list.block("10.0.0.9", reason="abuse")

    assert client.get("/health", headers={"X-Forwarded-For": "10.0.0.9"}).status_code == 403
    assert client.get("/health", headers={"X-Forwarded-For": "10.0.0.10"}).status_code == 200


def test_broker_listings(client, broker_staff, other_employer, employer, created):
    companies = client.get("/api/v1/broker/companies", headers=hdr(broker_staff))
    assert companies.status_code == 200
    assert [c["id"] for c in companies.json()] == [created["company"]["id"]]

    apps = client.get("/api/v1/broker/applications", headers=hdr(broker_staff))
    assert [a["id"] for a in apps.json()] == [created["application"]["id"]]

    no_broker = client.get("/api/v1/broker/companies", headers=hdr(other_employer))
    assert no_broker.status_code == 403
    assert no_broker.json()["detail"] == "Access denied: No broker association"

    # Employers signed up through a broker still cannot list the broker's book
    assert client.get("/api/v1/broker/companies", headers=hdr(employer)).status_code == 403


def test_document_override(client, db, employer, admin, make_actor, created):
    company_id = created["company"]["id"]
    url = "/api/v1/admin/document-override"

    forbidden = client.post(url, json={"company_id": company_id, "reason": "late"}, headers=hdr(employer))
    assert forbidden.status_code == 403

    no_reason = client.post(url, json={"company_id": company_id, "reason": " "}, headers=hdr(admin))
    assert no_reason.status_code == 400

    owner = make_actor(db, "owner@broker-1.example.com", role=Role.OWNER.value, broker_id="broker-1")
    ok = client.post(url, json={"company_id": company_id, "reason": "paper copy on file"}, headers=hdr(owner))
    assert ok.status_code == 200
    assert ok.json()["success"] is True

    outside_owner = make_actor(db, "owner@broker-2.example.com", role=Role.OWNER.value, broker_id="broker-2")
    denied = client.post(url, json={"company_id": company_id, "reason": "x"}, headers=hdr(outside_owner))
    assert denied.status_code == 404

    overrides = [e for e in db.list_audit_entries() if e.action == AuditAction.DOCUMENT_OVERRIDE]
    assert len(overrides) == 1
    assert overrides[0].entity_id == company_id
    assert "paper copy on file" in overrides[0].details


def test_role_change_is_admin_only_and_takes_effect(client, db, employer, admin, created):
    app_id = created["application"]["id"]
    outsider = db.create_user("later-staff@example.com", Role.EMPLOYER.value, broker_id="broker-1")

    denied = client.patch(f"/api/v1/admin/users/{outsider.id}/role", json={"role": "broker_staff"}, headers=hdr(employer))
    assert denied.status_code == 403
    assert client.get(f"/api/v1/applications/{app_id}", headers={"X-User-Id": outsider.id}).status_code == 404

    changed = client.patch(f"/api/v1/admin/users/{outsider.id}/role", json={"role": "broker_staff"}, headers=hdr(admin))
    assert changed.status_code == 200
    assert changed.json()["role"] == "broker_staff"
    assert client.get(f"/api/v1/applications/{app_id}", headers={"X-User-Id": outsider.id}).status_code == 200

    updates = [e for e in db.list_audit_entries() if e.action == AuditAction.ADMIN_USER_UPDATE]
    assert len(updates) == 1


def test_role_change_unknown_user(client, admin):
    response = client.patch("/api/v1/admin/users/missing/role", json={"role": "staff"}, headers=hdr(admin))
    assert response.status_code == 404


def test_admin_blocks_and_unblocks_ip(client, services, db, employer, admin):
    url = "/api/v1/admin/ip-blocks"
    assert client.post(url, json={"ip_address": "10.0.0.9"}, headers=hdr(employer)).status_code == 403
    assert client.post(url, json={"ip_address": "not-an-ip"}, headers=hdr(admin)).status_code == 422

    blocked = client.post(url, json={"ip_address": "10.0.0.9", "reason": "abuse", "ttl_seconds": 600}, headers=hdr(admin))
    assert blocked.status_code == 201
    assert blocked.json() == {"ip_address": "10.0.0.9", "blocked": True, "expires_in": 600}
    assert services.ip_block_list.is_blocked("10.0.0.9")

    assert client.delete(f"{url}/10.0.0.9", headers=hdr(employer)).status_code == 403
    unblocked = client.delete(f"{url}/10.0.0.9", headers=hdr(admin))
    assert unblocked.status_code == 200
    assert not services.ip_block_list.is_blocked("10.0.0.9")
    assert client.delete(f"{url}/10.0.0.9", headers=hdr(admin)).status_code == 404

    actions = [e.action for e in db.list_audit_entries()]
    assert actions.count(AuditAction.ADMIN_IP_BLOCK) == 1
    assert actions.count(AuditAction.ADMIN_IP_UNBLOCK) == 1


def test_audit_logs_and_export(client, employer, admin, created):
    assert client.get("/api/v1/admin/audit-logs", headers=hdr(employer)).status_code == 403

    logs = client.get("/api/v1/admin/audit-logs", headers=hdr(admin))
    assert logs.status_code == 200
    assert logs.json()[0]["action"] == "application_create"

    export = client.get("/api/v1/admin/audit-logs/export", headers=hdr(admin))
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "audit-logs.csv" in export.headers["content-disposition"]
    lines = export.text.splitlines()
    assert lines[0].startswith("Timestamp,Action,User")
    assert "application_create" in lines[1]


def test_api_key_protection(services, monkeypatch):
    monkeypatch.setenv("API_KEYS", "k1,k2")
    client = TestClient(create_app(services))

    assert client.get("/health").status_code == 200
    assert client.get("/api/v1/rating-areas").status_code == 401
    assert client.get("/api/v1/rating-areas", headers={"X-API-KEY": "k2"}).status_code == 200


class ExplodingStore(PostgresDB):
    def get_user(self, user_id):
        raise RuntimeError("driver crashed")


def test_unexpected_errors_return_generic_500(rating_config, monkeypatch):
    monkeypatch.delenv("API_KEYS", raising=False)
    services = build_services(store=ExplodingStore(), cache=RedisCache(), rating_config=rating_config)
    client = TestClient(create_app(services), raise_server_exceptions=False)

    response = client.get("/api/v1/applications/a1", headers={"X-User-Id": "u1"})
    assert response.status_code == 500
    assert response.json()["code"] == "internal_error"
    assert "driver crashed" not in response.text


@pytest.mark.asyncio
async def test_api_key_dependency_is_open_without_configured_keys(monkeypatch):
    monkeypatch.delenv("API_KEYS", raising=False)
    assert await api_key_protection(request=None, x_api_key=None) is None


@pytest.mark.asyncio
async def test_api_key_dependency_rejects_wrong_key(monkeypatch):
    monkeypatch.setenv("API_KEYS", "k1")
    with pytest.raises(HTTPException) as exc_info:
        await api_key_protection(request=None, x_api_key="bad")
    assert exc_info.value.status_code == 401
    assert await api_key_protection(request=None, x_api_key=" k1 ") is None
