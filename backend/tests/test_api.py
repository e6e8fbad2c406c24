"""
HTTP surface via FastAPI TestClient with dependency overrides.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import FakeAirtable, FakeAttio, attio_person
from syncbridge.api.v1.endpoints.schema import get_schema_fetcher
from syncbridge.api.v1.endpoints.sync import get_sync_service
from syncbridge.main import app
from syncbridge.services.attio_service import AttioServiceError
from syncbridge.services.connection_store import InMemoryConnectionStore, get_connection_store
from syncbridge.services.schema_fetcher import SchemaFetcher
from syncbridge.services.sync_audit import SyncAudit, get_sync_audit
from syncbridge.services.sync_service import SyncService


class RecordingAudit(SyncAudit):
    def __init__(self):
        self.results = []

    def record(self, result):
        self.results.append(result)
        return None

    def list_runs(self, status_filter=None, direction_filter=None, limit=50, offset=0):
        rows = [
            {
                "id": "1",
                "direction": "attio-to-airtable",
                "status": "completed",
                "dry_run": False,
                "started_at": "2024-01-01T00:00:00Z",
                "finished_at": "2024-01-01T00:00:01Z",
                "duration_ms": 1000,
                "details": None,
                "stats": {"created": 2, "updated": 0, "skipped": 0, "errors": 0},
                "created_at": "2024-01-01T00:00:01Z",
            }
        ]
        if status_filter and status_filter != "completed":
            return [], 0
        return rows, len(rows)


@pytest.fixture
def audit():
    return RecordingAudit()


@pytest.fixture
def fakes():
    return FakeAttio(records={"people": [attio_person(i) for i in range(3)]}), FakeAirtable()


@pytest.fixture
def client(store, audit, fakes):
    attio, airtable = fakes
    app.dependency_overrides[get_connection_store] = lambda: store
    app.dependency_overrides[get_sync_audit] = lambda: audit
    app.dependency_overrides[get_sync_service] = lambda: SyncService(
        store,
        attio_factory=lambda conn: attio,
        airtable_factory=lambda conn: airtable,
        sleep=lambda seconds: None,
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def sync_body(**config):
    base = {"attio_collection_id": "people", "airtable_table_id": "tblContacts", "rate_limit_delay_ms": 0}
    base.update(config)
    return {
        "config": base,
        "field_mappings": [
            {
                "source_field": {"id": "email_addresses", "name": "Email addresses", "type": "email-address"},
                "dest_field": {"id": "fldEmail", "name": "Email", "type": "email"},
                "confidence": 0.9,
            }
        ],
    }


def test_health_and_root(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["message"] == "SyncBridge API"


def test_list_connections_hides_tokens(client):
    resp = client.get("/api/v1/connections")

    assert resp.status_code == 200
    body = resp.json()
    assert {c["service"]: c["connected"] for c in body["connections"]} == {"attio": True, "airtable": True}
    assert "token" not in resp.text


def test_disconnect(client, store):
    resp = client.delete("/api/v1/connections/attio")

    assert resp.status_code == 200
    assert not store.is_connected("attio")


def test_unknown_service_is_404(client):
    assert client.delete("/api/v1/connections/salesforce").status_code == 404
    assert client.get("/api/v1/schema/salesforce/collections").status_code == 404


def test_failed_connect_is_502(client):
    with patch(
        "syncbridge.api.v1.endpoints.connections.connect",
        side_effect=AttioServiceError("Attio API error: 401", status_code=401),
    ):
        resp = client.post("/api/v1/connections/attio", json={"token": "bad"})

    assert resp.status_code == 502
    assert "401" in resp.json()["detail"]


def test_connect_stores_and_reports(client):
    store = InMemoryConnectionStore()
    app.dependency_overrides[get_connection_store] = lambda: store
    with patch("syncbridge.api.v1.endpoints.connections.connect") as connect:
        connect.side_effect = lambda service, creds, s: s.store_connection(service, creds)
        resp = client.post("/api/v1/connections/airtable", json={"token": "tok", "base_id": "appX"})

    assert resp.status_code == 200
    assert resp.json()["connected"] is True
    assert resp.json()["base_id"] == "appX"


def test_schema_fallback_warnings(client):
    app.dependency_overrides[get_schema_fetcher] = lambda: SchemaFetcher()

    resp = client.get("/api/v1/schema/airtable/collections/tblA/fields")

    assert resp.status_code == 200
    body = resp.json()
    assert [f["name"] for f in body["fields"]][0] == "Email Address"
    assert body["warnings"]


def test_auto_map_endpoint(client):
    resp = client.post(
        "/api/v1/mappings/auto",
        json={
            "source_fields": [
                {"id": "email", "name": "Email", "type": "email-address"},
                {"id": "twitter", "name": "Twitter", "type": "text"},
            ],
            "dest_fields": [{"id": "fldEmail", "name": "Email Address", "type": "email"}],
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["mappings"][0]["dest_field"]["name"] == "Email Address"
    assert body["mappings"][0]["confidence"] == 0.9
    assert [f["id"] for f in body["unmapped"]] == ["twitter"]


def test_transform_catalogue(client):
    body = client.get("/api/v1/mappings/transforms").json()

    assert "dateFormat" in body["types"]
    assert "slugify" in body["plugins"]


def test_sync_run(client, fakes, audit):
    resp = client.post("/api/v1/sync/run", json=sync_body())

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "completed"
    assert body["stats"]["created"] == 3
    assert len(fakes[1].created) == 3
    assert len(audit.results) == 1


def test_sync_preview_writes_nothing(client, fakes):
    resp = client.post("/api/v1/sync/preview", json=sync_body())

    assert resp.status_code == 200
    assert resp.json()["dry_run"] is True
    assert resp.json()["stats"]["created"] == 3
    assert fakes[1].created == []


def test_sync_config_error_is_400(client, audit):
    resp = client.post("/api/v1/sync/run", json=sync_body(attio_filter="{broken"))

    assert resp.status_code == 400
    assert audit.results[0].status == "error"


def test_sync_list_runs(client):
    body = client.get("/api/v1/sync/runs").json()

    assert body["total"] == 1
    assert body["entries"][0]["stats"]["created"] == 2
    assert client.get("/api/v1/sync/runs", params={"status": "error"}).json()["total"] == 0
