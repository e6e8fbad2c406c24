"""
Sync engine schemas: run configuration, statistics, log entries, progress, results.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from syncbridge.core.config import get_settings
from syncbridge.schemas.connection import Connection
from syncbridge.schemas.mapping import FieldMapping

LogLevel = Literal["info", "success", "warning", "error", "debug"]


class SyncDirection(str, Enum):
    ATTIO_TO_AIRTABLE = "attio-to-airtable"
    AIRTABLE_TO_ATTIO = "airtable-to-attio"
    BIDIRECTIONAL = "bidirectional"


class SyncState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class SyncConfig(BaseModel):
    """
    Immutable snapshot consumed by one sync run. Use with_updates() to derive
    the next snapshot between runs.
    """
    model_config = ConfigDict(frozen=True)

    direction: SyncDirection = SyncDirection.ATTIO_TO_AIRTABLE
    prevent_deletes: bool = True
    create_backups: bool = False
    create_new: bool = True
    update_existing: bool = True
    record_limit: int | None = Field(
        default_factory=lambda: get_settings().sync_default_record_limit,
        ge=1,
        description="None means unlimited",
    )
    rate_limit_delay_ms: int = Field(
        default_factory=lambda: get_settings().sync_rate_limit_delay_ms,
        ge=0,
    )
    attio_filter: str | None = Field(None, description="Attio query filter as JSON text")
    airtable_filter: str | None = Field(None, description="Airtable filterByFormula expression")
    stop_on_error: bool = False
    dry_run_first: bool = False

    attio_collection_id: str | None = None
    attio_collection_kind: Literal["object", "list"] = "object"
    attio_list_id: str | None = Field(None, description="List id when it differs from the list slug")
    parent_object_kind: str | None = Field(None, description="Resolved parent object of a list collection")
    airtable_table_id: str | None = None
    match_field: str | None = Field(
        None, description="Destination field used to find existing records; unset means never found"
    )

    @field_validator("record_limit", mode="before")
    @classmethod
    def parse_record_limit(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str):
            text = v.strip().lower()
            if text in ("", "unlimited", "all"):
                return None
            return int(text)
        return v

    @field_validator("attio_filter", "airtable_filter", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def with_updates(self, **changes: Any) -> "SyncConfig":
        """Return a new validated snapshot with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return SyncConfig.model_validate(data)


class SyncStats(BaseModel):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    @property
    def total(self) -> int:
        return self.created + self.updated + self.skipped + self.errors


class SyncLogEntry(BaseModel):
    level: LogLevel
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SyncProgress(BaseModel):
    current: int
    total: int
    progress: int = 0
    message: str = ""


class SyncRunRequest(BaseModel):
    """Request body for POST /sync/run and /sync/preview."""
    config: SyncConfig
    field_mappings: list[FieldMapping]
    connections: dict[str, Connection] | None = Field(
        None, description="Explicit connections; omitted services are read from the connection store"
    )


class SyncRunResult(BaseModel):
    status: SyncState
    direction: SyncDirection
    dry_run: bool = False
    stats: SyncStats
    logs: list[SyncLogEntry] = []
    error: str | None = None
    started_at: datetime
    finished_at: datetime

    @property
    def duration_ms(self) -> int:
        return int((self.finished_at - self.started_at).total_seconds() * 1000)
