"""
Connection store backends and the connect flow.
"""

from unittest.mock import MagicMock, patch

import pytest

from syncbridge.core.config import get_settings
from syncbridge.schemas.connection import AIRTABLE, ATTIO, Credentials
from syncbridge.services.airtable_service import AirtableServiceError
from syncbridge.services.connection_store import (
    InMemoryConnectionStore,
    SupabaseConnectionStore,
    get_connection_store,
    seed_from_settings,
)
from syncbridge.services.connections import airtable_from_store, attio_from_store, connect


def _response(status_code=200, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.content = b"{}"
    resp.json.return_value = body
    return resp


def test_in_memory_store_roundtrip():
    store = InMemoryConnectionStore()
    assert not store.is_connected(ATTIO)

    conn = store.store_connection(ATTIO, Credentials(token="tok"))

    assert store.is_connected(ATTIO)
    assert store.get_connection(ATTIO).token == "tok"
    assert conn.connected_at is not None
    store.clear_all()
    assert store.get_connection(ATTIO) is None


def test_connect_attio_stores_on_success():
    store = InMemoryConnectionStore()
    with patch("syncbridge.services.gateway.requests.request", return_value=_response(body={"data": []})):
        conn = connect(ATTIO, Credentials(token="tok"), store)

    assert conn.connected
    assert store.is_connected(ATTIO)


def test_connect_attio_probes_object():
    store = InMemoryConnectionStore()
    with patch("syncbridge.services.gateway.requests.request", return_value=_response(body={"data": []})) as req:
        connect(ATTIO, Credentials(token="tok", object_id="people"), store)

    urls = [c.kwargs["url"] for c in req.call_args_list]
    assert urls[-1].endswith("/objects/people/records/query")
    assert req.call_args.kwargs["json"]["limit"] == 1


def test_connect_airtable_invalid_token_is_not_stored():
    store = InMemoryConnectionStore()
    with patch(
        "syncbridge.services.gateway.requests.request",
        return_value=_response(401, {"error": {"type": "AUTHENTICATION_REQUIRED"}}),
    ):
        with pytest.raises(AirtableServiceError, match="Invalid token"):
            connect(AIRTABLE, Credentials(token="bad", base_id="appX"), store)

    assert not store.is_connected(AIRTABLE)


def test_connect_airtable_requires_base_id():
    with pytest.raises(AirtableServiceError, match="base ID"):
        connect(AIRTABLE, Credentials(token="tok"), InMemoryConnectionStore())


def test_connect_unknown_service():
    with pytest.raises(ValueError):
        connect("salesforce", Credentials(token="tok"), InMemoryConnectionStore())


def test_gateways_from_store(store):
    assert attio_from_store(store) is not None
    assert airtable_from_store(store).base_id == "appTestBase"
    assert attio_from_store(InMemoryConnectionStore()) is None
    assert airtable_from_store(InMemoryConnectionStore()) is None


def test_seed_from_environment(monkeypatch):
    monkeypatch.setenv("ATTIO_ACCESS_TOKEN", "env-attio")
    monkeypatch.setenv("AIRTABLE_ACCESS_TOKEN", "env-airtable")
    monkeypatch.setenv("AIRTABLE_BASE_ID", "appEnv")
    get_settings.cache_clear()
    store = InMemoryConnectionStore()

    seed_from_settings(store)

    assert store.get_connection(ATTIO).token == "env-attio"
    assert store.get_connection(AIRTABLE).base_id == "appEnv"


def test_default_store_is_in_memory():
    assert isinstance(get_connection_store(), InMemoryConnectionStore)


def test_supabase_store_reads_row():
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = MagicMock(
        data=[{"token": "tok", "object_id": None, "base_id": "appX", "connected_at": "2024-01-01T00:00:00Z"}]
    )
    store = SupabaseConnectionStore(client=client)

    conn = store.get_connection(AIRTABLE)

    client.table.assert_called_with("integration_connections")
    assert conn.token == "tok"
    assert conn.base_id == "appX"


def test_supabase_store_upserts_on_service():
    client = MagicMock()
    store = SupabaseConnectionStore(client=client)

    store.store_connection(ATTIO, Credentials(token="tok"))

    row = client.table.return_value.upsert.call_args.args[0]
    assert row["service"] == ATTIO
    assert row["token"] == "tok"
    assert client.table.return_value.upsert.call_args.kwargs["on_conflict"] == "service"
