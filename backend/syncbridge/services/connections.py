"""
Connect flow: test credentials against the remote service, store them only on success.
"""

import logging
from typing import Any

from syncbridge.schemas.connection import AIRTABLE, ATTIO, Connection, Credentials
from syncbridge.services.airtable_service import AirtableService, AirtableServiceError
from syncbridge.services.attio_service import AttioService
from syncbridge.services.connection_store import ConnectionStore

logger = logging.getLogger(__name__)


def check_attio_connection(credentials: Credentials) -> dict[str, Any]:
    """List objects; when object_id is given, also probe it with a one-record query."""
    attio = AttioService(access_token=credentials.token)
    objects = attio.list_objects()
    result: dict[str, Any] = {"success": True, "available_objects": objects}
    if credentials.object_id:
        records = attio.query_records(credentials.object_id, limit=1)
        result["object_info"] = {"id": credentials.object_id, "records": records}
    return result


def check_airtable_connection(credentials: Credentials) -> dict[str, Any]:
    """List the base's tables; 401/404 surface as AirtableServiceError."""
    if not credentials.base_id:
        raise AirtableServiceError("Airtable base ID is required")
    airtable = AirtableService(access_token=credentials.token, base_id=credentials.base_id)
    try:
        tables = airtable.list_tables()
    except AirtableServiceError as e:
        if e.status_code == 401:
            raise AirtableServiceError(
                "Invalid token or insufficient permissions", status_code=401, detail=e.detail
            ) from e
        if e.status_code == 404:
            raise AirtableServiceError(
                "Base not found or access denied", status_code=404, detail=e.detail
            ) from e
        raise
    return {"success": True, "tables": tables}


def connect(service: str, credentials: Credentials, store: ConnectionStore) -> Connection:
    """Run the connectivity test for service and persist the connection."""
    if service == ATTIO:
        check_attio_connection(credentials)
    elif service == AIRTABLE:
        check_airtable_connection(credentials)
    else:
        raise ValueError(f"Unknown service: {service}")
    conn = store.store_connection(service, credentials)
    logger.info("Connected %s", service)
    return conn


def attio_from_store(store: ConnectionStore) -> AttioService | None:
    """Gateway for the stored Attio connection, or None when not connected."""
    conn = store.get_connection(ATTIO)
    if not conn or not conn.connected:
        return None
    return AttioService(access_token=conn.token)


def airtable_from_store(store: ConnectionStore) -> AirtableService | None:
    conn = store.get_connection(AIRTABLE)
    if not conn or not conn.connected or not conn.base_id:
        return None
    return AirtableService(access_token=conn.token, base_id=conn.base_id)
