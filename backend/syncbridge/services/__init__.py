# Services: Attio / Airtable gateways, connection store, schema, mapping, sync engine

from syncbridge.services.airtable_service import (
    AirtableService,
    AirtableServiceError,
    get_airtable_service,
)
from syncbridge.services.attio_service import (
    AttioService,
    AttioServiceError,
    get_attio_service,
)
from syncbridge.services.connection_store import (
    ConnectionStore,
    InMemoryConnectionStore,
    SupabaseConnectionStore,
    get_connection_store,
)
from syncbridge.services.field_mapper import FieldMapper
from syncbridge.services.gateway import GatewayError
from syncbridge.services.schema_fetcher import SchemaFetcher
from syncbridge.services.sync_service import (
    SyncAbortedError,
    SyncBackupError,
    SyncConfigError,
    SyncError,
    SyncFetchError,
    SyncInProgressError,
    SyncService,
)
from syncbridge.services.transformer import TransformConfigError, TransformRegistry, default_registry

__all__ = [
    "AirtableService",
    "AirtableServiceError",
    "get_airtable_service",
    "AttioService",
    "AttioServiceError",
    "get_attio_service",
    "ConnectionStore",
    "InMemoryConnectionStore",
    "SupabaseConnectionStore",
    "get_connection_store",
    "FieldMapper",
    "GatewayError",
    "SchemaFetcher",
    "SyncService",
    "SyncError",
    "SyncConfigError",
    "SyncFetchError",
    "SyncBackupError",
    "SyncAbortedError",
    "SyncInProgressError",
    "TransformConfigError",
    "TransformRegistry",
    "default_registry",
]
