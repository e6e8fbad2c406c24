"""Sync run audit schema (API contract). One row per completed or failed run."""

from typing import Any

from pydantic import BaseModel, ConfigDict


class SyncRunRecord(BaseModel):
    """Single sync audit entry."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    direction: str
    status: str  # 'completed' | 'error'
    dry_run: bool = False
    started_at: str
    finished_at: str
    duration_ms: int
    details: str | None = None
    stats: dict[str, Any] = {}
    created_at: str | None = None


class SyncRunListResponse(BaseModel):
    """Paginated sync audit list."""
    entries: list[SyncRunRecord]
    total: int
    page: int
    page_size: int
