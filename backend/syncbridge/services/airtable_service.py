"""
Airtable API client scoped to one base: table schema (meta API), records, fields.
"""

import logging
from typing import Any, Iterator

from syncbridge.core.config import get_settings
from syncbridge.services.gateway import GatewayError, RemoteGateway

logger = logging.getLogger(__name__)

# Airtable list-records pageSize maximum
MAX_PAGE_SIZE = 100


class AirtableServiceError(GatewayError):
    """Raised when an Airtable API call fails."""


def formula_literal(value: Any) -> str:
    """Render a value as an Airtable formula literal."""
    if isinstance(value, bool):
        return "TRUE()" if value else "FALSE()"
    if isinstance(value, (int, float)):
        return repr(value)
    text = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{text}'"


class AirtableService(RemoteGateway):
    """
    Airtable Web API service for a single base. Bearer token auth.
    """

    service_name = "Airtable"
    error_class = AirtableServiceError

    def __init__(
        self,
        access_token: str | None = None,
        base_id: str | None = None,
        base_url: str | None = None,
        **kwargs: Any,
    ) -> None:
        settings = get_settings()
        super().__init__(
            access_token or settings.airtable_access_token,
            base_url or settings.airtable_api_url,
            **kwargs,
        )
        self.base_id = base_id or settings.airtable_base_id
        if not self.base_id:
            raise AirtableServiceError("Airtable base ID not configured")

    # -------------------------------------------------------------------------
    # Schema (meta API)
    # -------------------------------------------------------------------------

    def list_tables(self) -> list[dict[str, Any]]:
        """Tables of the base with their field schemas."""
        return self._request("GET", f"/meta/bases/{self.base_id}/tables").get("tables") or []

    def get_table_fields(self, table_id: str) -> list[dict[str, Any]]:
        """Fields of one table (matched by id or name); empty when the table is unknown."""
        for table in self.list_tables():
            if table.get("id") == table_id or table.get("name") == table_id:
                return table.get("fields") or []
        return []

    def create_field(self, table_id: str, field_config: dict[str, Any]) -> dict[str, Any]:
        """Create a new field on a table. field_config: {name, type, description?, options?}."""
        return self._request(
            "POST",
            f"/meta/bases/{self.base_id}/tables/{table_id}/fields",
            json=field_config,
        )

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def list_records(
        self,
        table_id: str,
        filter_formula: str | None = None,
        page_size: int = MAX_PAGE_SIZE,
        offset: str | None = None,
        max_records: int | None = None,
    ) -> dict[str, Any]:
        """One page of records: {"records": [...], "offset": "..."}; offset absent on the last page."""
        params: dict[str, Any] = {"pageSize": min(page_size, MAX_PAGE_SIZE)}
        if filter_formula:
            params["filterByFormula"] = filter_formula
        if offset:
            params["offset"] = offset
        if max_records is not None:
            params["maxRecords"] = max_records
        return self._request("GET", f"/{self.base_id}/{table_id}", params=params)

    def iter_records(
        self,
        table_id: str,
        filter_formula: str | None = None,
        limit: int | None = None,
        page_size: int = MAX_PAGE_SIZE,
    ) -> Iterator[dict[str, Any]]:
        """Yield records following the offset token until exhausted or limit reached."""
        offset: str | None = None
        yielded = 0
        while True:
            data = self.list_records(
                table_id,
                filter_formula=filter_formula,
                page_size=page_size,
                offset=offset,
                max_records=limit,
            )
            for record in data.get("records") or []:
                if limit is not None and yielded >= limit:
                    return
                yield record
                yielded += 1
            offset = data.get("offset")
            if not offset or (limit is not None and yielded >= limit):
                return

    def find_records(self, table_id: str, formula: str, max_records: int = 1) -> list[dict[str, Any]]:
        data = self.list_records(table_id, filter_formula=formula, page_size=max_records, max_records=max_records)
        return data.get("records") or []

    def create_record(self, table_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Create one record; fields keyed by field name."""
        return self._request("POST", f"/{self.base_id}/{table_id}", json={"fields": fields})

    def update_record(self, table_id: str, record_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Patch one record (only the given fields change)."""
        return self._request("PATCH", f"/{self.base_id}/{table_id}/{record_id}", json={"fields": fields})


def get_airtable_service(access_token: str | None = None, base_id: str | None = None) -> AirtableService:
    """Dependency: return an AirtableService instance."""
    return AirtableService(access_token=access_token, base_id=base_id)
