"""
Sync endpoints: run a sync or a dry-run preview, and list past runs from the audit trail.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from syncbridge.schemas.sync import SyncRunRequest, SyncRunResult
from syncbridge.schemas.sync_log import SyncRunListResponse, SyncRunRecord
from syncbridge.services.connection_store import ConnectionStore, get_connection_store
from syncbridge.services.sync_audit import SyncAudit, get_sync_audit, run_sync
from syncbridge.services.sync_service import (
    SyncConfigError,
    SyncError,
    SyncInProgressError,
    SyncService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def get_sync_service(store: ConnectionStore = Depends(get_connection_store)) -> SyncService:
    """Dependency: a fresh orchestrator per request."""
    return SyncService(store)


def _execute(body: SyncRunRequest, service: SyncService, audit: SyncAudit, dry_run: bool) -> SyncRunResult:
    service.config = body.config
    service.update_field_mappings(body.field_mappings)
    service.update_connections(body.connections)
    try:
        return run_sync(service, dry_run=dry_run, audit=audit)
    except SyncConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except SyncInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except SyncError as e:
        logger.warning("Sync failed: %s", e.message)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.post(
    "/run",
    response_model=SyncRunResult,
    summary="Run sync",
    description="Synchronise records in the configured direction. Per-record write failures are counted in stats.errors.",
)
def run(
    body: SyncRunRequest,
    service: SyncService = Depends(get_sync_service),
    audit: SyncAudit = Depends(get_sync_audit),
) -> SyncRunResult:
    return _execute(body, service, audit, dry_run=False)


@router.post(
    "/preview",
    response_model=SyncRunResult,
    summary="Preview sync",
    description="Dry run: fetch and plan without writing. Stats count the actions that would be taken.",
)
def preview(
    body: SyncRunRequest,
    service: SyncService = Depends(get_sync_service),
    audit: SyncAudit = Depends(get_sync_audit),
) -> SyncRunResult:
    return _execute(body, service, audit, dry_run=True)


@router.get(
    "/runs",
    response_model=SyncRunListResponse,
    summary="List sync runs",
    description="Paginated audit trail of past runs (empty unless Supabase is configured).",
)
def list_runs(
    audit: SyncAudit = Depends(get_sync_audit),
    status_filter: str = Query("all", alias="status", description="Filter by status: all, completed, error"),
    direction: str = Query("all", description="Filter by direction: all, attio-to-airtable, airtable-to-attio, bidirectional"),
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
) -> SyncRunListResponse:
    offset = (page - 1) * page_size
    rows, total = audit.list_runs(
        status_filter=status_filter if status_filter != "all" else None,
        direction_filter=direction if direction != "all" else None,
        limit=page_size,
        offset=offset,
    )
    return SyncRunListResponse(
        entries=[SyncRunRecord.model_validate(r) for r in rows],
        total=total,
        page=page,
        page_size=page_size,
    )
