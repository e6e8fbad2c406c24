# Pydantic request/response schemas (API contract).

from syncbridge.schemas.common import ErrorDetail, MessageResponse
from syncbridge.schemas.connection import Connection, ConnectionStatus, Credentials
from syncbridge.schemas.mapping import (
    CollectionDescriptor,
    FieldDescriptor,
    FieldMapping,
    TransformSpec,
)
from syncbridge.schemas.sync import (
    SyncConfig,
    SyncDirection,
    SyncLogEntry,
    SyncProgress,
    SyncRunResult,
    SyncState,
    SyncStats,
)

__all__ = [
    "MessageResponse",
    "ErrorDetail",
    "Credentials",
    "Connection",
    "ConnectionStatus",
    "CollectionDescriptor",
    "FieldDescriptor",
    "FieldMapping",
    "TransformSpec",
    "SyncConfig",
    "SyncDirection",
    "SyncLogEntry",
    "SyncProgress",
    "SyncRunResult",
    "SyncState",
    "SyncStats",
]
