"""
Tests for the FastAPI surface (`api/`).

Covers contract rules:
- Starting a run is start-or-noop and runs the job in the background.
- Service errors map to 400 / 404 / 409.
- Money is returned as decimal strings.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from api import dependencies
from api.main import app
from domain.attribution import DomainStatus, TenantConfig, TimelineSource
from domain.billing import BillingConfig, FlatRevshare
from domain.events import BusinessEvent, EventKind
from fakes import utc
from services.settings import Settings

TENANT = "tenant-1"
SENT_AT = utc(2025, 3, 1)


@pytest.fixture
def client(events, email_log, tenants, attribution, jobs, billing):
    tenants.add(TenantConfig(tenant_id=TENANT))
    email_log.add(TENANT, "jane@acme.com", SENT_AT)
    events.add(
        BusinessEvent("evt-001", TENANT, EventKind.SIGN_UP, SENT_AT + timedelta(days=1), email="jane@acme.com"),
        BusinessEvent("evt-002", TENANT, EventKind.PAYING_CUSTOMER, SENT_AT + timedelta(days=4), email="jane@acme.com"),
    )
    billing.add_config(
        BillingConfig(tenant_id=TENANT, model=FlatRevshare(rate=Decimal("0.20")), contract_start=date(2025, 1, 1))
    )

    app.dependency_overrides[dependencies.get_app_settings] = lambda: Settings(batch_delay_ms=0)
    app.dependency_overrides[dependencies.get_event_source] = lambda: events
    app.dependency_overrides[dependencies.get_email_log] = lambda: email_log
    app.dependency_overrides[dependencies.get_tenant_store] = lambda: tenants
    app.dependency_overrides[dependencies.get_attribution_store] = lambda: attribution
    app.dependency_overrides[dependencies.get_job_store] = lambda: jobs
    app.dependency_overrides[dependencies.get_billing_store] = lambda: billing
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_start_run_processes_in_background(client: TestClient, jobs) -> None:
    response = client.post("/api/v1/attribution/runs", json={"tenant_id": TENANT, "batch_size": 1})

    assert response.status_code == 202
    body = response.json()
    assert body["created"] is True
    assert body["total_events"] == 2

    run = client.get(f"/api/v1/attribution/runs/{body['job_id']}").json()
    assert run["status"] == "COMPLETED"
    assert run["processed_events"] == 2
    assert run["hard_matches"] == 2
    assert run["current_batch"] == 2
    assert run["progress_percent"] == 100.0


def test_start_run_reuses_active_job(client: TestClient, jobs) -> None:
    active = jobs.create_job(TENANT, 100, 2, utc(2025, 5, 1))

    response = client.post("/api/v1/attribution/runs", json={"tenant_id": TENANT})

    assert response.status_code == 202
    assert response.json()["job_id"] == active.job_id
    assert response.json()["created"] is False
    assert jobs.get_job(active.job_id).status.value == "PENDING"


def test_cancel_run(client: TestClient, jobs) -> None:
    active = jobs.create_job(TENANT, 100, 2, utc(2025, 5, 1))

    response = client.post(f"/api/v1/attribution/runs/{active.job_id}/cancel")

    assert response.status_code == 200
    assert response.json()["cancel_requested"] is True


def test_unknown_run_is_404(client: TestClient) -> None:
    response = client.get("/api/v1/attribution/runs/missing")

    assert response.status_code == 404
    assert response.json()["detail"] == "Attribution job not found: missing"


def test_sync_and_submit_revenue(client: TestClient, billing) -> None:
    client.post("/api/v1/attribution/runs", json={"tenant_id": TENANT})

    sync = client.post("/api/v1/reconciliation/sync", json={"tenant_id": TENANT, "as_of": "2025-04-05"})
    assert sync.status_code == 200
    assert sync.json()["periods_created"] == 5

    march = billing.period_by_label(TENANT, "March 2025")
    items = client.get(f"/api/v1/reconciliation/periods/{march.period_id}/line-items").json()
    assert [item["domain"] for item in items] == ["acme.com"]

    response = client.post(
        f"/api/v1/reconciliation/line-items/{items[0]['line_item_id']}/revenue",
        json={"amount": "10000", "notes": "March invoice"},
    )
    assert response.status_code == 200
    assert response.json()["amount_owed"] == "2000.00"
    assert response.json()["status"] == "SUBMITTED"

    period = client.get(f"/api/v1/reconciliation/periods/{march.period_id}").json()
    assert period["total_amount_owed"] == "2000.00"


def test_period_status_errors(client: TestClient) -> None:
    created = client.post(
        "/api/v1/reconciliation/periods",
        json={"tenant_id": TENANT, "start_date": "2025-06-01", "end_date": "2025-06-30"},
    )
    assert created.status_code == 201
    period_id = created.json()["period_id"]
    url = f"/api/v1/reconciliation/periods/{period_id}/status"

    conflict = client.patch(url, json={"status": "FINALIZED"})
    assert conflict.status_code == 409
    assert conflict.json()["detail"] == "Cannot transition from DRAFT to FINALIZED"

    assert client.patch(url, json={"status": "SHIPPED"}).status_code == 400
    assert client.patch("/api/v1/reconciliation/periods/missing/status", json={"status": "DRAFT"}).status_code == 404

    sent = client.patch(url, json={"status": "pending_client"})
    assert sent.status_code == 200
    assert sent.json()["status"] == "PENDING_CLIENT"


def test_domain_dispute_routes(client: TestClient, attribution) -> None:
    record = attribution.seed_domain(TENANT, "acme.com", events=[(TimelineSource.SIGN_UP, SENT_AT)])

    disputed = client.post(f"/api/v1/attribution/domains/{record.domain_id}/dispute", json={"reason": "Existing customer"})
    assert disputed.status_code == 200
    assert disputed.json()["status"] == "DISPUTE_PENDING"

    resolved = client.post(f"/api/v1/attribution/domains/{record.domain_id}/dispute/resolve", json={"approved": False})
    assert resolved.json()["status"] == "ATTRIBUTED"

    promote = client.post(f"/api/v1/attribution/domains/{record.domain_id}/promote", json={"promoted_by": "client"})
    assert promote.status_code == 409


def test_manual_event_route(client: TestClient, attribution) -> None:
    created = client.post(
        "/api/v1/attribution/domains/manual-events",
        json={
            "tenant_id": TENANT,
            "domain": "https://www.Globex.com/pricing",
            "event_type": "paying_customer",
            "event_date": "2025-03-12",
            "notes": "Signed at the conference",
        },
    )
    assert created.status_code == 201
    assert created.json()["domain"] == "globex.com"
    assert created.json()["status"] == "MANUAL"
    assert attribution.get_domain(TENANT, "globex.com").has_paying_customer

    payload = {"tenant_id": TENANT, "domain": "globex.com", "event_type": "positive_reply", "event_date": "2025-03-12"}
    assert client.post("/api/v1/attribution/domains/manual-events", json=payload).status_code == 400
    payload["event_type"] = "sign_up"
    payload["tenant_id"] = "tenant-9"
    assert client.post("/api/v1/attribution/domains/manual-events", json=payload).status_code == 404


def test_add_domain_to_period_route(client: TestClient, attribution) -> None:
    created = client.post(
        "/api/v1/reconciliation/periods",
        json={"tenant_id": TENANT, "start_date": "2025-06-01", "end_date": "2025-06-30"},
    )
    period_id = created.json()["period_id"]
    record = attribution.seed_domain(TENANT, "globex.com", status=DomainStatus.OUTSIDE_WINDOW)
    url = f"/api/v1/reconciliation/periods/{period_id}/domains"

    added = client.post(url, json={"domain_id": record.domain_id, "billing_start_date": "2025-06-10"})
    assert added.status_code == 201
    assert added.json()["domain"] == "globex.com"
    assert added.json()["has_paying_customer"] is True
    assert added.json()["paying_customer_date"] == "2025-06-10"
    assert attribution.get_domain(TENANT, "globex.com").status is DomainStatus.CONFIRMED

    duplicate = client.post(url, json={"domain_id": record.domain_id, "billing_start_date": "2025-06-10"})
    assert duplicate.status_code == 409

    other = attribution.seed_domain(TENANT, "initech.com", status=DomainStatus.OUTSIDE_WINDOW)
    too_late = client.post(url, json={"domain_id": other.domain_id, "billing_start_date": "2025-07-01"})
    assert too_late.status_code == 400
    assert client.post(url, json={"domain_id": "missing", "billing_start_date": "2025-06-10"}).status_code == 404
