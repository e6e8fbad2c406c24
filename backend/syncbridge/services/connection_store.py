"""
Connection store: per-service credentials for Attio and Airtable.
In-memory by default; Supabase-backed (integration_connections table) when configured.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from supabase import Client, create_client

from syncbridge.core.config import get_settings
from syncbridge.schemas.connection import AIRTABLE, ATTIO, SERVICES, Connection, Credentials

logger = logging.getLogger(__name__)


class ConnectionStore:
    """Interface consumed by the sync engine and the connection endpoints."""

    def get_connection(self, service: str) -> Optional[Connection]:
        raise NotImplementedError

    def store_connection(self, service: str, credentials: Credentials) -> Connection:
        raise NotImplementedError

    def disconnect(self, service: str) -> None:
        raise NotImplementedError

    def is_connected(self, service: str) -> bool:
        conn = self.get_connection(service)
        return bool(conn and conn.connected)

    def clear_all(self) -> None:
        for service in SERVICES:
            self.disconnect(service)


class InMemoryConnectionStore(ConnectionStore):
    def __init__(self) -> None:
        self._connections: Dict[str, Connection] = {}

    def get_connection(self, service: str) -> Optional[Connection]:
        return self._connections.get(service)

    def store_connection(self, service: str, credentials: Credentials) -> Connection:
        conn = Connection(credentials=credentials)
        self._connections[service] = conn
        return conn

    def disconnect(self, service: str) -> None:
        self._connections.pop(service, None)


class SupabaseConnectionStore(ConnectionStore):
    """Persists connections in the integration_connections table (one row per service)."""

    TABLE = "integration_connections"

    def __init__(self, client: Optional[Client] = None) -> None:
        if client is None:
            settings = get_settings()
            client = create_client(settings.supabase_url, settings.supabase_service_key)
        self.client = client

    def get_connection(self, service: str) -> Optional[Connection]:
        try:
            response = (
                self.client.table(self.TABLE)
                .select("token, object_id, base_id, connected_at")
                .eq("service", service)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("Get connection error (%s): %s", service, str(e))
            return None
        if not response.data:
            return None
        row = response.data[0]
        return Connection(
            credentials=Credentials(
                token=row["token"],
                object_id=row.get("object_id"),
                base_id=row.get("base_id"),
            ),
            connected_at=row.get("connected_at") or datetime.now(timezone.utc),
        )

    def store_connection(self, service: str, credentials: Credentials) -> Connection:
        conn = Connection(credentials=credentials)
        row: Dict[str, Any] = {
            "service": service,
            "token": credentials.token,
            "object_id": credentials.object_id,
            "base_id": credentials.base_id,
            "connected_at": conn.connected_at.isoformat().replace("+00:00", "Z"),
        }
        self.client.table(self.TABLE).upsert(row, on_conflict="service").execute()
        return conn

    def disconnect(self, service: str) -> None:
        try:
            self.client.table(self.TABLE).delete().eq("service", service).execute()
        except Exception as e:
            logger.error("Disconnect error (%s): %s", service, str(e))


def seed_from_settings(store: ConnectionStore) -> None:
    """Store connections for services whose tokens are set in the environment."""
    settings = get_settings()
    if settings.attio_access_token and not store.get_connection(ATTIO):
        store.store_connection(ATTIO, Credentials(token=settings.attio_access_token))
        logger.info("Seeded Attio connection from environment")
    if settings.airtable_access_token and settings.airtable_base_id and not store.get_connection(AIRTABLE):
        store.store_connection(
            AIRTABLE,
            Credentials(token=settings.airtable_access_token, base_id=settings.airtable_base_id),
        )
        logger.info("Seeded Airtable connection from environment")


@lru_cache()
def get_connection_store() -> ConnectionStore:
    """Dependency: process-wide store, Supabase-backed when configured."""
    settings = get_settings()
    store: ConnectionStore
    if settings.supabase_enabled:
        store = SupabaseConnectionStore()
    else:
        store = InMemoryConnectionStore()
    seed_from_settings(store)
    return store
