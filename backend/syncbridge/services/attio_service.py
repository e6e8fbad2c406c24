"""
Attio API v2 client: objects, lists, attributes, records and list entries.
"""

import logging
from typing import Any, Iterator

from syncbridge.core.config import get_settings
from syncbridge.services.gateway import GatewayError, RemoteGateway

logger = logging.getLogger(__name__)

# Attio caps query pages at 500; we stay well under.
DEFAULT_PAGE_SIZE = 100


class AttioServiceError(GatewayError):
    """Raised when an Attio API call fails."""


def record_id(record: dict[str, Any]) -> str | None:
    """Attio ids are objects ({"record_id": ...}); tolerate plain strings too."""
    rid = record.get("id")
    if isinstance(rid, dict):
        return rid.get("record_id") or rid.get("entry_id")
    return rid


class AttioService(RemoteGateway):
    """
    Attio API v2 service. Bearer token auth; every call returns the decoded JSON body.
    """

    service_name = "Attio"
    error_class = AttioServiceError

    def __init__(self, access_token: str | None = None, base_url: str | None = None, **kwargs: Any) -> None:
        settings = get_settings()
        super().__init__(
            access_token or settings.attio_access_token,
            base_url or settings.attio_api_url,
            **kwargs,
        )

    # -------------------------------------------------------------------------
    # Objects
    # -------------------------------------------------------------------------

    def list_objects(self) -> list[dict[str, Any]]:
        """List object types in the workspace (people, companies, deals, custom)."""
        return self._request("GET", "/objects").get("data") or []

    def list_object_attributes(self, object_id: str) -> list[dict[str, Any]]:
        """Attribute (field) schema of an object."""
        return self._request("GET", f"/objects/{object_id}/attributes").get("data") or []

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def query_records(
        self,
        object_id: str,
        filter: dict[str, Any] | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """One page of records of an object, optionally filtered."""
        body: dict[str, Any] = {"limit": limit, "offset": offset}
        if filter:
            body["filter"] = filter
        return self._request("POST", f"/objects/{object_id}/records/query", json=body).get("data") or []

    def iter_records(
        self,
        object_id: str,
        filter: dict[str, Any] | None = None,
        limit: int | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Iterator[dict[str, Any]]:
        """Yield records page by page until exhausted or limit reached."""
        yield from _paginate(
            lambda size, offset: self.query_records(object_id, filter=filter, limit=size, offset=offset),
            limit,
            page_size,
        )

    def create_record(self, object_id: str, values: dict[str, Any]) -> dict[str, Any]:
        """Create a record; values is keyed by attribute slug."""
        data = self._request("POST", f"/objects/{object_id}/records", json={"data": {"values": values}})
        return data.get("data") or data

    def update_record(self, object_id: str, record_id: str, values: dict[str, Any]) -> dict[str, Any]:
        """Patch a record's values (multi-value attributes are appended by Attio)."""
        data = self._request(
            "PATCH",
            f"/objects/{object_id}/records/{record_id}",
            json={"data": {"values": values}},
        )
        return data.get("data") or data

    # -------------------------------------------------------------------------
    # Lists
    # -------------------------------------------------------------------------

    def list_lists(self) -> list[dict[str, Any]]:
        return self._request("GET", "/lists").get("data") or []

    def get_list(self, list_id: str) -> dict[str, Any] | None:
        """List metadata, including the parent object reference when Attio provides it."""
        return self._request("GET", f"/lists/{list_id}").get("data")

    def list_list_attributes(self, list_id: str) -> list[dict[str, Any]]:
        return self._request("GET", f"/lists/{list_id}/attributes").get("data") or []

    def query_list_entries(
        self,
        list_id: str,
        filter: dict[str, Any] | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """One page of list entries. Entries carry parent_record_id, not the record payload."""
        body: dict[str, Any] = {"limit": limit, "offset": offset}
        if filter:
            body["filter"] = filter
        return self._request("POST", f"/lists/{list_id}/entries/query", json=body).get("data") or []

    def iter_list_entries(
        self,
        list_id: str,
        filter: dict[str, Any] | None = None,
        limit: int | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Iterator[dict[str, Any]]:
        yield from _paginate(
            lambda size, offset: self.query_list_entries(list_id, filter=filter, limit=size, offset=offset),
            limit,
            page_size,
        )

    def create_list_entry(
        self,
        list_id: str,
        parent_object: str,
        parent_record_id: str,
        entry_values: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Add an existing record to a list."""
        body = {
            "data": {
                "parent_record_id": parent_record_id,
                "parent_object": parent_object,
                "entry_values": entry_values or {},
            }
        }
        data = self._request("POST", f"/lists/{list_id}/entries", json=body)
        return data.get("data") or data


def _paginate(fetch_page, limit: int | None, page_size: int) -> Iterator[dict[str, Any]]:
    """Offset pagination shared by records and list entries."""
    offset = 0
    remaining = limit
    while remaining is None or remaining > 0:
        size = page_size if remaining is None else min(page_size, remaining)
        page = fetch_page(size, offset)
        for item in page:
            yield item
        if remaining is not None:
            remaining -= len(page)
        if len(page) < size:
            return
        offset += len(page)


def get_attio_service(access_token: str | None = None) -> AttioService:
    """Dependency: return an AttioService instance."""
    return AttioService(access_token=access_token)
