"""
HTTP tests for the ballot API

Drives the FastAPI app through TestClient with the in-memory store on
app.state.db, so no PostgreSQL is needed.
"""

import json

import pytest
from fastapi.testclient import TestClient

from database.vote_utils import TOTAL_COUNTED
from server.main import app
from tests.fakes import FakeDatabase

CA_BALLOT = {
    "schema_version": "1",
    "created_utc": "2026-01-10T12:00:00Z",
    "voter_id": "v1",
    "context": {"region": "CA", "country_or_territory": "US"},
    "ballot_track_a": {
        "approve_interim_masculine_regent": True,
        "prefer_open_contest_in_approx_90_days": False,
    },
}


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def client(db):
    app.state.db = db
    with TestClient(app) as c:
        yield c
    app.state.db = None


class TestSubmit:

    def test_counted_then_duplicate(self, client, db):
        first = client.post("/api/submit", json=CA_BALLOT)
        assert first.status_code == 200
        body = first.json()
        assert body["ok"] is True
        assert body["counted"] is True
        assert body["message"] == "Submission received and counted."
        assert body["receipt_id"].startswith("r_")
        assert set(body) == {"ok", "receipt_id", "counted", "message"}

        second = client.post("/api/submit", json=CA_BALLOT)
        assert second.status_code == 200
        assert second.json() == {
            "ok": True,
            "receipt_id": body["receipt_id"],
            "counted": False,
            "message": "Duplicate detected (already counted).",
        }
        assert db.store.aggregates[TOTAL_COUNTED] == 1

    def test_results_after_submission(self, client):
        client.post("/api/submit", json=CA_BALLOT)
        client.post("/api/submit", json=CA_BALLOT)

        response = client.get("/api/results")
        assert response.status_code == 200
        results = response.json()
        assert results["ballot"]["total_submissions_counted"] == 1
        assert results["ballot"]["approve_interim_yes"] == 1
        assert results["ballot"]["prefer_open_contest_yes"] == 0
        assert results["ballot"]["approval_rate_percent"] == 100.0
        assert results["regional_balance"] == [
            {"region": "CA", "submissions_counted": 1, "approve_rate_percent": 100.0}
        ]
        assert results["window"]["timezone"] == "America/Los_Angeles"
        assert results["last_updated_utc"].endswith("Z")

    def test_results_empty(self, client):
        results = client.get("/api/results").json()
        assert results["ballot"]["total_submissions_counted"] == 0
        assert results["ballot"]["approval_rate_percent"] is None
        assert results["regional_balance"] == []

    def test_malformed_json(self, client, db):
        response = client.post(
            "/api/submit",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "BAD_JSON"}
        assert db.store.submissions == {}

    def test_empty_body(self, client):
        response = client.post("/api/submit", content=b"")
        assert response.status_code == 400
        assert response.json()["error"] == "BAD_JSON"

    @pytest.mark.parametrize("body", [b"null", b"[]", b"5", b'"ballot"'])
    def test_non_object_json_fails_validation(self, client, db, body):
        response = client.post(
            "/api/submit",
            content=body,
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        details = response.json()["details"]
        assert details[0] == "Submission must be a JSON object"
        assert "Missing voter_id" in details
        assert "Missing context.country_or_territory" in details
        assert db.store.submissions == {}

    @pytest.mark.parametrize("escape", ["\\ud800", "\\udfff", "\\u0000"])
    def test_unstorable_text_is_bad_json(self, client, db, escape):
        """JSON escapes that parse but can't be stored as UTF-8 text"""
        body = json.dumps(CA_BALLOT).replace('"v1"', f'"v{escape}"')
        response = client.post(
            "/api/submit",
            content=body.encode("ascii"),
            headers={"Content-Type": "application/json", "X-Request-ID": "req-utf8"},
        )
        assert response.status_code == 400
        assert response.json() == {"ok": False, "error": "BAD_JSON"}
        assert response.headers["X-Request-ID"] == "req-utf8"
        assert db.store.submissions == {}

    def test_non_string_voter_id_fails_validation(self, client):
        response = client.post("/api/submit", json={**CA_BALLOT, "voter_id": True})
        assert response.status_code == 422
        assert response.json()["details"] == ["voter_id must be a string"]

    def test_validation_failed(self, client, db):
        response = client.post("/api/submit", json={"voter_id": "v1"})
        assert response.status_code == 422
        body = response.json()
        assert body["ok"] is False
        assert body["error"] == "VALIDATION_FAILED"
        assert "Missing schema_version" in body["details"]
        assert "Missing context.region" in body["details"]
        assert db.store.submissions == {}

    def test_storage_unavailable(self, client, db):
        db.store.available = False
        response = client.post("/api/submit", json=CA_BALLOT)
        assert response.status_code == 503
        assert response.json() == {
            "ok": False,
            "error": "STORAGE_UNAVAILABLE",
            "message": "Storage unavailable",
        }

    def test_unexpected_error_is_generic(self, client, db):
        async def broken_lookup(dedupe_key):
            raise RuntimeError("secret detail")

        db.submissions.lookup = broken_lookup
        response = client.post(
            "/api/submit",
            json=CA_BALLOT,
            headers={"X-Request-ID": "req-500", "Origin": "https://ballot.example.org"},
        )

        assert response.status_code == 500
        assert response.json() == {
            "ok": False,
            "error": "INTERNAL_ERROR",
            "message": "Internal server error",
        }
        assert "secret detail" not in response.text
        assert response.headers["X-Request-ID"] == "req-500"
        assert response.headers["access-control-allow-origin"] == "*"


class TestTransport:

    def test_request_id_echoed(self, client):
        response = client.get("/api/results", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    def test_unsafe_request_id_replaced(self, client):
        response = client.get("/api/results", headers={"X-Request-ID": "not valid!"})
        assert response.headers["X-Request-ID"] != "not valid!"
        assert len(response.headers["X-Request-ID"]) == 36

    def test_cors_preflight(self, client):
        response = client.options(
            "/api/submit",
            headers={
                "Origin": "https://ballot.example.org",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-max-age"] == "86400"
        assert "POST" in response.headers["access-control-allow-methods"]


class TestMonitoring:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "running"
        assert "submit" in body["endpoints"]

    def test_health(self, client):
        client.post("/api/submit", json=CA_BALLOT)
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["storage"]["submissions_stored"] == 1
        assert body["checks"]["ledger"] == {"status": "consistent"}

    def test_health_reports_outage(self, client, db):
        db.store.available = False
        response = client.get("/api/health")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_metrics_exposed(self, client):
        client.post("/api/submit", json=CA_BALLOT)
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "ballot_submissions_total" in response.text
        assert "ballot_api_requests_total" in response.text
