"""
Sync audit trail: one sync_log row per run in Supabase, plus the run_sync helper
used by the API to execute a run and collect its result.
"""

import json
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from supabase import Client, create_client

from syncbridge.core.config import get_settings
from syncbridge.schemas.sync import SyncRunResult, SyncState
from syncbridge.services.sync_service import SyncError, SyncInProgressError, SyncService

logger = logging.getLogger(__name__)


def _iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


class SyncAudit:
    """Interface; the default records nothing."""

    def record(self, result: SyncRunResult) -> Optional[Dict[str, Any]]:
        return None

    def list_runs(
        self,
        status_filter: Optional[str] = None,
        direction_filter: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Dict[str, Any]], int]:
        return [], 0


class SupabaseSyncAudit(SyncAudit):
    TABLE = "sync_log"

    def __init__(self, client: Optional[Client] = None) -> None:
        if client is None:
            settings = get_settings()
            client = create_client(settings.supabase_url, settings.supabase_service_key)
        self.client = client

    def record(self, result: SyncRunResult) -> Optional[Dict[str, Any]]:
        """Append an audit row. Failure is logged; the run's own outcome stands."""
        row: Dict[str, Any] = {
            "direction": result.direction.value,
            "status": result.status.value,
            "dry_run": result.dry_run,
            "started_at": _iso(result.started_at),
            "finished_at": _iso(result.finished_at),
            "duration_ms": result.duration_ms,
            "details": result.error,
            "stats": result.stats.model_dump(),
        }
        try:
            response = self.client.table(self.TABLE).insert(row).execute()
        except Exception as e:
            logger.error("Insert sync log error: %s", str(e))
            return None
        if response.data:
            out = dict(response.data[0])
            out["id"] = str(out["id"])
            return out
        return {"id": "", **row}

    def list_runs(
        self,
        status_filter: Optional[str] = None,
        direction_filter: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Dict[str, Any]], int]:
        """Newest first. Returns (rows, total_count)."""
        try:
            q = (
                self.client.table(self.TABLE)
                .select(
                    "id, direction, status, dry_run, started_at, finished_at, duration_ms, details, stats, created_at",
                    count="exact",
                )
                .order("created_at", desc=True)
            )
            if status_filter:
                q = q.eq("status", status_filter)
            if direction_filter:
                q = q.eq("direction", direction_filter)
            response = q.range(offset, offset + limit - 1).execute()
        except Exception as e:
            logger.error("List sync logs error: %s", str(e))
            return [], 0
        total = response.count if response.count is not None else len(response.data or [])
        rows = list(response.data or [])
        for r in rows:
            if r.get("id"):
                r["id"] = str(r["id"])
            if isinstance(r.get("stats"), str):
                r["stats"] = json.loads(r["stats"])
        return rows, total


@lru_cache()
def get_sync_audit() -> SyncAudit:
    """Dependency: Supabase-backed audit when configured, otherwise a no-op."""
    if get_settings().supabase_enabled:
        return SupabaseSyncAudit()
    return SyncAudit()


def run_sync(service: SyncService, dry_run: bool = False, audit: SyncAudit | None = None) -> SyncRunResult:
    """
    Run one sync to completion and package the outcome. Every finished or failed
    run is audited; SyncError failures are re-raised after the audit row is written.
    """
    started_at = datetime.now(timezone.utc)
    failure: SyncError | None = None
    try:
        service.perform_sync(dry_run=dry_run)
    except SyncInProgressError:
        raise
    except SyncError as e:
        failure = e
    result = SyncRunResult(
        status=SyncState.ERROR if failure else service.state,
        direction=service.config.direction,
        dry_run=dry_run,
        stats=service.stats,
        logs=list(service.logs),
        error=failure.message if failure else None,
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
    )
    if audit is not None:
        audit.record(result)
    if failure is not None:
        raise failure
    return result
