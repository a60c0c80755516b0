"""Tests for the FastAPI webhook and monitoring endpoints."""

import httpx
import pytest
from fastapi.testclient import TestClient

from warranty_intake.intake.ingestor import WebhookIngestor
from warranty_intake.intake.vapi_client import VapiClient
from warranty_intake.matching import HomeownerMatcher
from warranty_intake.notifications import LoggingNotificationDispatcher
from warranty_intake.routing.claim_workflow import ClaimCreator
from warranty_intake.routing.gatekeeper import CallGatekeeper
from warranty_intake.voice.app import app, get_gatekeeper, get_ingestor, get_store


async def _no_sleep(seconds):
    return None


@pytest.fixture
def client(seeded_store, settings):
    """Test client wired to the temp store."""
    def ingestor():
        return WebhookIngestor(
            store=seeded_store,
            matcher=HomeownerMatcher(seeded_store),
            claim_creator=ClaimCreator(seeded_store),
            dispatcher=LoggingNotificationDispatcher(),
            vendor_client=VapiClient(
                settings.vapi_call_api_key,
                base_url=settings.vapi_api_base_url,
                transport=httpx.MockTransport(lambda request: httpx.Response(404)),
            ),
            settings=settings,
            sleep=_no_sleep,
        )

    app.dependency_overrides[get_store] = lambda: seeded_store
    app.dependency_overrides[get_gatekeeper] = lambda: CallGatekeeper(seeded_store, settings)
    app.dependency_overrides[get_ingestor] = ingestor
    yield TestClient(app)
    app.dependency_overrides.clear()


def end_of_call_report(call_id: str = "call-123", address: str = "123 Main Street Seattle WA") -> dict:
    return {
        "message": {
            "type": "end-of-call-report",
            "call": {"id": call_id, "customer": {"number": "+15558675309"}},
            "analysis": {
                "structuredData": {
                    "propertyAddress": address,
                    "callIntent": "warranty_issue",
                    "issueDescription": "Garage door opener stopped working after install",
                }
            },
        }
    }


class TestHealth:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["calls"] == 0


class TestGatekeeperEndpoint:

    def test_known_caller_transferred(self, client, auth_headers):
        payload = {"message": {"type": "assistant-request", "call": {"customer": {"number": "(555) 123-4567"}}}}
        response = client.post("/vapi/gatekeeper", json=payload, headers=auth_headers)

        assert response.status_code == 200
        assert "transferPlan" in response.json()

    def test_unknown_caller_screened(self, client, auth_headers):
        payload = {"message": {"type": "assistant-request", "call": {"customer": {"number": "+15559999999"}}}}
        response = client.post("/vapi/gatekeeper", json=payload, headers=auth_headers)

        assert response.status_code == 200
        assert "assistant" in response.json()

    def test_bearer_auth(self, client, settings):
        payload = {"message": {"type": "assistant-request", "call": {"customer": {"number": "+15551234567"}}}}
        response = client.post(
            "/vapi/gatekeeper",
            json=payload,
            headers={"Authorization": f"Bearer {settings.vapi_secret}"},
        )
        assert "transferPlan" in response.json()

    def test_unauthorized(self, client):
        response = client.post("/vapi/gatekeeper", json={}, headers={"x-vapi-secret": "wrong"})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_other_events_ignored(self, client, auth_headers):
        payload = {"message": {"type": "status-update"}}
        response = client.post("/vapi/gatekeeper", json=payload, headers=auth_headers)
        assert response.json() == {"message": "Event ignored"}

    def test_invalid_json_screened(self, client, auth_headers):
        response = client.post(
            "/vapi/gatekeeper",
            content=b"{not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )
        assert response.status_code == 200
        assert "assistant" in response.json()


class TestWebhookEndpoint:

    def test_always_success(self, client, auth_headers, seeded_store):
        response = client.post("/vapi/webhook", json=end_of_call_report(), headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True}
        assert seeded_store.get_call("call-123").is_verified is True

    def test_success_even_on_garbage(self, client, auth_headers):
        response = client.post(
            "/vapi/webhook",
            content=b"garbage",
            headers={**auth_headers, "Content-Type": "application/json"},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_success_when_fallback_fails(self, client, auth_headers, seeded_store):
        payload = end_of_call_report()
        del payload["message"]["analysis"]["structuredData"]["propertyAddress"]
        response = client.post("/vapi/webhook", json=payload, headers=auth_headers)

        assert response.json() == {"success": True}
        assert seeded_store.get_call("call-123").is_verified is False

    def test_unauthorized(self, client, seeded_store):
        response = client.post("/vapi/webhook", json=end_of_call_report())

        assert response.status_code == 401
        assert seeded_store.count_calls() == 0

    def test_duplicate_delivery(self, client, auth_headers, seeded_store):
        for _ in range(3):
            response = client.post("/vapi/webhook", json=end_of_call_report(), headers=auth_headers)
            assert response.json() == {"success": True}

        assert seeded_store.count_calls() == 1
        assert len(seeded_store.list_claims("ho-1")) == 1


class TestMonitoringEndpoints:

    def test_calls_listing(self, client, auth_headers):
        client.post("/vapi/webhook", json=end_of_call_report("call-1"), headers=auth_headers)
        client.post("/vapi/webhook", json=end_of_call_report("call-2", address="PO Box 7"), headers=auth_headers)

        data = client.get("/calls").json()
        assert data["total"] == 2
        unverified = client.get("/calls", params={"verified": "false"}).json()
        assert [c["external_call_id"] for c in unverified["calls"]] == ["call-2"]

    def test_call_detail_with_claim(self, client, auth_headers):
        client.post("/vapi/webhook", json=end_of_call_report(), headers=auth_headers)

        data = client.get("/calls/call-123").json()
        assert data["call"]["homeowner_id"] == "ho-1"
        assert data["claim"]["claim_number"] == 1

    def test_call_not_found(self, client):
        assert client.get("/calls/nonexistent").status_code == 404

    def test_homeowner_claims(self, client, auth_headers):
        client.post("/vapi/webhook", json=end_of_call_report(), headers=auth_headers)

        data = client.get("/homeowners/ho-1/claims").json()
        assert data["homeowner"]["name"] == "Jordan Lee"
        assert [c["claim_number"] for c in data["claims"]] == [1]

    def test_homeowner_not_found(self, client):
        assert client.get("/homeowners/nobody/claims").status_code == 404
