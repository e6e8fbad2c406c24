"""
Shared fixtures: isolated settings, in-memory connection store, fake gateways.

Nothing here touches the network. Gateway classes are tested by patching
requests.request; the sync engine runs against the in-memory fakes below.
"""

import re
from typing import Any

import pytest

from syncbridge.core.config import get_settings
from syncbridge.schemas.connection import AIRTABLE, ATTIO, Credentials
from syncbridge.schemas.mapping import FieldDescriptor, FieldMapping
from syncbridge.services.airtable_service import AirtableServiceError
from syncbridge.services.attio_service import AttioServiceError
from syncbridge.services.connection_store import InMemoryConnectionStore, get_connection_store
from syncbridge.services.sync_audit import get_sync_audit

_ENV_KEYS = (
    "ATTIO_ACCESS_TOKEN",
    "AIRTABLE_ACCESS_TOKEN",
    "AIRTABLE_BASE_ID",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "SYNC_DEFAULT_RECORD_LIMIT",
    "SYNC_RATE_LIMIT_DELAY_MS",
    "HTTP_MAX_RETRIES",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    get_connection_store.cache_clear()
    get_sync_audit.cache_clear()
    yield
    get_settings.cache_clear()
    get_connection_store.cache_clear()
    get_sync_audit.cache_clear()


# -----------------------------------------------------------------------------
# Record builders
# -----------------------------------------------------------------------------

def attio_person(i: int, email: str | None = None) -> dict[str, Any]:
    return {
        "id": {"workspace_id": "ws", "object_id": "people", "record_id": f"person-{i}"},
        "values": {
            "email_addresses": [{"email_address": email or f"person{i}@example.com"}],
            "name": [{"full_name": f"Person {i}", "first_name": "Person", "last_name": str(i)}],
        },
    }


def airtable_row(i: int, email: str | None = None) -> dict[str, Any]:
    return {
        "id": f"recRow{i}",
        "createdTime": "2024-01-01T00:00:00.000Z",
        "fields": {"Email": email or f"row{i}@example.com", "Full Name": f"Row {i}"},
    }


EMAIL_MAPPING_FIELDS = (
    FieldDescriptor(id="email_addresses", name="Email addresses", type="email-address"),
    FieldDescriptor(id="fldEmail", name="Email", type="email"),
)
NAME_MAPPING_FIELDS = (
    FieldDescriptor(id="name", name="Name", type="personal-name"),
    FieldDescriptor(id="fldName", name="Full Name", type="singleLineText"),
)


@pytest.fixture
def mappings() -> list[FieldMapping]:
    return [
        FieldMapping(source_field=EMAIL_MAPPING_FIELDS[0], dest_field=EMAIL_MAPPING_FIELDS[1], confidence=0.9),
        FieldMapping(source_field=NAME_MAPPING_FIELDS[0], dest_field=NAME_MAPPING_FIELDS[1], confidence=0.9),
    ]


# -----------------------------------------------------------------------------
# Fake gateways
# -----------------------------------------------------------------------------

class FakeAttio:
    """In-memory stand-in for AttioService. Every call is appended to self.calls."""

    def __init__(
        self,
        records: dict[str, list[dict[str, Any]]] | None = None,
        list_entries: dict[str, list[dict[str, Any]]] | None = None,
        lists: list[dict[str, Any]] | None = None,
        fail_writes_on: tuple[int, ...] = (),
        events: list[str] | None = None,
    ) -> None:
        self.records = records or {}
        self.list_entries = list_entries or {}
        self.lists = lists or []
        self.fail_writes_on = fail_writes_on
        self.events = events if events is not None else []
        self.calls: list[tuple] = []
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.updated: list[tuple[str, str, dict[str, Any]]] = []
        self.entries_created: list[tuple[str, str, str]] = []
        self._writes = 0

    def _write(self) -> None:
        self._writes += 1
        if self._writes in self.fail_writes_on:
            raise AttioServiceError("Attio API error: 422", status_code=422)

    def list_objects(self):
        self.calls.append(("list_objects",))
        return [
            {"api_slug": "people", "plural_noun": "People"},
            {"api_slug": "companies", "plural_noun": "Companies"},
        ]

    def list_lists(self):
        self.calls.append(("list_lists",))
        return self.lists

    def get_list(self, list_id):
        self.calls.append(("get_list", list_id))
        return next((l for l in self.lists if l.get("api_slug") == list_id), None)

    def iter_records(self, object_id, filter=None, limit=None, page_size=100):
        self.calls.append(("iter_records", object_id, filter, limit))
        self.events.append(f"fetch:attio:{object_id}")
        records = list(self.records.get(object_id, []))
        if filter and "record_id" in filter:
            wanted = filter["record_id"]["$in"]
            records = [r for r in records if r["id"]["record_id"] in wanted]
        return iter(records if limit is None else records[:limit])

    def query_records(self, object_id, filter=None, limit=100, offset=0):
        self.calls.append(("query_records", object_id, filter, limit))
        matches = []
        for r in self.records.get(object_id, []):
            if all(
                any(v.get("email_address") == want or v.get("value") == want for v in r["values"].get(key, []))
                for key, want in (filter or {}).items()
            ):
                matches.append(r)
        return matches[:limit]

    def iter_list_entries(self, list_id, filter=None, limit=None, page_size=100):
        self.calls.append(("iter_list_entries", list_id, filter, limit))
        entries = list(self.list_entries.get(list_id, []))
        return iter(entries if limit is None else entries[:limit])

    def create_record(self, object_id, values):
        self.calls.append(("create_record", object_id))
        self.events.append("write:attio")
        self._write()
        new_id = f"new-{len(self.created) + 1}"
        self.created.append((object_id, values))
        self.records.setdefault(object_id, []).append(
            {"id": {"record_id": new_id}, "values": {k: [{"value": v}] for k, v in values.items()}}
        )
        return {"id": {"record_id": new_id}, "values": values}

    def update_record(self, object_id, record_id, values):
        self.calls.append(("update_record", object_id, record_id))
        self.events.append("write:attio")
        self._write()
        self.updated.append((object_id, record_id, values))
        return {"id": {"record_id": record_id}, "values": values}

    def create_list_entry(self, list_id, parent_object, parent_record_id, entry_values=None):
        self.calls.append(("create_list_entry", list_id, parent_object, parent_record_id))
        self.entries_created.append((list_id, parent_object, parent_record_id))
        return {"id": {"entry_id": f"entry-{parent_record_id}"}}


_FORMULA = re.compile(r"^\{(?P<field>[^}]+)\} = '(?P<value>.*)'$")


class FakeAirtable:
    """In-memory stand-in for AirtableService with a single table."""

    def __init__(
        self,
        records: list[dict[str, Any]] | None = None,
        fail_writes_on: tuple[int, ...] = (),
        events: list[str] | None = None,
    ) -> None:
        self.records = list(records or [])
        self.fail_writes_on = fail_writes_on
        self.events = events if events is not None else []
        self.calls: list[tuple] = []
        self.created: list[dict[str, Any]] = []
        self.updated: list[tuple[str, dict[str, Any]]] = []
        self._writes = 0

    def _write(self) -> None:
        self._writes += 1
        if self._writes in self.fail_writes_on:
            raise AirtableServiceError("Airtable API error: 422", status_code=422)

    def iter_records(self, table_id, filter_formula=None, limit=None, page_size=100):
        self.calls.append(("iter_records", table_id, filter_formula, limit))
        self.events.append(f"fetch:airtable:{table_id}")
        return iter(self.records if limit is None else self.records[:limit])

    def find_records(self, table_id, formula, max_records=1):
        self.calls.append(("find_records", table_id, formula))
        m = _FORMULA.match(formula)
        if not m:
            return []
        return [r for r in self.records if r["fields"].get(m["field"]) == m["value"]][:max_records]

    def create_record(self, table_id, fields):
        self.calls.append(("create_record", table_id))
        self.events.append("write:airtable")
        self._write()
        record = {"id": f"recNew{len(self.created) + 1}", "fields": dict(fields)}
        self.created.append(fields)
        self.records.append(record)
        return record

    def update_record(self, table_id, record_id, fields):
        self.calls.append(("update_record", table_id, record_id))
        self.events.append("write:airtable")
        self._write()
        self.updated.append((record_id, fields))
        for r in self.records:
            if r["id"] == record_id:
                r["fields"].update(fields)
        return {"id": record_id, "fields": fields}


@pytest.fixture
def store() -> InMemoryConnectionStore:
    s = InMemoryConnectionStore()
    s.store_connection(ATTIO, Credentials(token="attio-token"))
    s.store_connection(AIRTABLE, Credentials(token="airtable-token", base_id="appTestBase"))
    return s
