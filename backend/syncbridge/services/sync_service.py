"""
Sync orchestrator: fetch source records, map and transform them, and write them
to the destination under the configured direction and safety policy.

Records are processed strictly one after another in source order, with a fixed
delay after each destination write. There is no delete code path.

Error policy:
- configuration / connection problems raise SyncConfigError before any fetch;
- a failed source fetch raises SyncFetchError and leaves the run in ERROR;
- a failed create/update is counted in stats.errors and the run continues,
  unless stop_on_error is set (SyncAbortedError);
- extraction and transform problems degrade silently (debug log).
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping

from syncbridge.core.config import get_settings
from syncbridge.schemas.connection import AIRTABLE, ATTIO, Connection
from syncbridge.schemas.mapping import CollectionDescriptor, FieldDescriptor, FieldMapping
from syncbridge.schemas.sync import (
    SyncConfig,
    SyncDirection,
    SyncLogEntry,
    SyncProgress,
    SyncState,
    SyncStats,
)
from syncbridge.services.airtable_service import AirtableService, formula_literal
from syncbridge.services.attio_service import AttioService, record_id
from syncbridge.services.connection_store import ConnectionStore
from syncbridge.services.gateway import GatewayError
from syncbridge.services.schema_fetcher import SchemaFetcher
from syncbridge.services.transformer import (
    TransformConfigError,
    TransformRegistry,
    apply_transformations,
    default_registry,
    validate_transformations,
)
from syncbridge.services.value_extractor import extract, is_blank

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class SyncError(Exception):
    """Base class for errors that unwind to the perform_sync caller."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SyncConfigError(SyncError):
    """Missing connection, selection or invalid setting; raised before any fetch."""


class SyncFetchError(SyncError):
    """A source read failed; the current direction is abandoned."""


class SyncBackupError(SyncError):
    """The pre-write backup step failed; nothing was written."""


class SyncAbortedError(SyncError):
    """A record write failed with stop_on_error set."""


class SyncInProgressError(SyncError):
    """perform_sync called while another run is active on the same instance."""


# -----------------------------------------------------------------------------
# Endpoints: one adapter per service so both directions share one code path
# -----------------------------------------------------------------------------

def field_key(field: FieldDescriptor, service: str) -> str:
    """Attio values are keyed by attribute slug, Airtable fields by name."""
    if service == AIRTABLE:
        return field.name or field.id
    return field.id


def mapping_field(mapping: FieldMapping, service: str) -> FieldDescriptor | None:
    return mapping.source_field if service == ATTIO else mapping.dest_field


class AttioEndpoint:
    """Selected Attio object or list."""

    service = ATTIO
    label = "Attio"

    def __init__(self, client: AttioService, config: SyncConfig, page_size: int) -> None:
        self.client = client
        self.collection_id = config.attio_collection_id or ""
        self.is_list = config.attio_collection_kind == "list"
        self.list_id = config.attio_list_id or self.collection_id
        self.parent_object = config.parent_object_kind
        self.page_size = page_size

    @property
    def target_object(self) -> str:
        """Object whose records are read and written (the list's parent for lists)."""
        return (self.parent_object or "") if self.is_list else self.collection_id

    def resolve_parent(self, log: Callable[[str, str], None]) -> None:
        if not self.is_list or self.parent_object:
            return
        fetcher = SchemaFetcher(attio=self.client)
        metadata = self.client.get_list(self.list_id)
        descriptor = CollectionDescriptor(id=self.list_id, name=(metadata or {}).get("name") or self.list_id, kind="list")
        self.parent_object = fetcher.resolve_list_parent(descriptor, metadata)
        log("info", f"Resolved parent object for list {self.list_id}: {self.parent_object}")

    def fetch_records(
        self,
        limit: int | None,
        filter: dict[str, Any] | None,
        log: Callable[[str, str], None],
    ) -> list[dict[str, Any]]:
        if not self.is_list:
            log("info", f"Fetching records from Attio object {self.collection_id}")
            return list(self.client.iter_records(self.collection_id, filter=filter, limit=limit, page_size=self.page_size))

        self.resolve_parent(log)
        log("info", f"Fetching list entries for list {self.list_id}")
        entries = list(self.client.iter_list_entries(self.list_id, filter=filter, limit=limit, page_size=self.page_size))
        log("info", f"Found {len(entries)} entries in the list")
        if not entries:
            return []
        parent_ids = [e["parent_record_id"] for e in entries if e.get("parent_record_id")]
        log("info", f"Fetching {len(parent_ids)} {self.parent_object} records from list entries")
        log("debug", f"Parent record IDs: {', '.join(parent_ids)}")
        return list(
            self.client.iter_records(
                self.target_object,
                filter={"record_id": {"$in": parent_ids}},
                limit=len(parent_ids),
                page_size=self.page_size,
            )
        )

    def snapshot(self) -> list[dict[str, Any]]:
        return list(self.client.iter_records(self.target_object, page_size=self.page_size))

    def create(self, values: dict[str, Any]) -> str | None:
        created = self.client.create_record(self.target_object, values)
        new_id = record_id(created)
        if self.is_list and new_id:
            self.client.create_list_entry(self.list_id, self.target_object, new_id)
        return new_id

    def update(self, existing_id: str, values: dict[str, Any]) -> None:
        self.client.update_record(self.target_object, existing_id, values)

    def find_by_field(self, key: str, value: Any) -> str | None:
        found = self.client.query_records(self.target_object, filter={key: value}, limit=1)
        return record_id(found[0]) if found else None


class AirtableEndpoint:
    """Selected Airtable table."""

    service = AIRTABLE
    label = "Airtable"

    def __init__(self, client: AirtableService, config: SyncConfig, page_size: int) -> None:
        self.client = client
        self.table_id = config.airtable_table_id or ""
        self.page_size = page_size

    def fetch_records(
        self,
        limit: int | None,
        filter: str | None,
        log: Callable[[str, str], None],
    ) -> list[dict[str, Any]]:
        log("info", f"Fetching records from Airtable table {self.table_id}")
        return list(self.client.iter_records(self.table_id, filter_formula=filter, limit=limit, page_size=self.page_size))

    def snapshot(self) -> list[dict[str, Any]]:
        return list(self.client.iter_records(self.table_id, page_size=self.page_size))

    def create(self, values: dict[str, Any]) -> str | None:
        return self.client.create_record(self.table_id, values).get("id")

    def update(self, existing_id: str, values: dict[str, Any]) -> None:
        self.client.update_record(self.table_id, existing_id, values)

    def find_by_field(self, key: str, value: Any) -> str | None:
        found = self.client.find_records(self.table_id, f"{{{key}}} = {formula_literal(value)}")
        return found[0].get("id") if found else None


Endpoint = AttioEndpoint | AirtableEndpoint


# -----------------------------------------------------------------------------
# Pluggable record matching and backups
# -----------------------------------------------------------------------------

class RecordMatcher:
    """Locates the destination record a mapped record should update."""

    def find(self, endpoint: Endpoint, values: dict[str, Any]) -> str | None:
        raise NotImplementedError


class NullRecordMatcher(RecordMatcher):
    """Never finds a match: every record is treated as new."""

    def find(self, endpoint: Endpoint, values: dict[str, Any]) -> str | None:
        return None


class KeyFieldMatcher(RecordMatcher):
    """Matches on one designated field; keys maps service name to that field's key there."""

    def __init__(self, keys: Mapping[str, str]) -> None:
        self.keys = dict(keys)

    def find(self, endpoint: Endpoint, values: dict[str, Any]) -> str | None:
        key = self.keys.get(endpoint.service)
        if not key or is_blank(values.get(key)):
            return None
        return endpoint.find_by_field(key, values[key])


def matcher_for(match_field: str | None, mappings: list[FieldMapping]) -> RecordMatcher:
    """
    KeyFieldMatcher for the mapping whose Attio slug or Airtable name equals
    match_field; NullRecordMatcher when unset or not mapped.
    """
    if not match_field:
        return NullRecordMatcher()
    for m in mappings:
        if not m.is_complete:
            continue
        keys = {ATTIO: field_key(m.source_field, ATTIO), AIRTABLE: field_key(m.dest_field, AIRTABLE)}
        if match_field in keys.values() or match_field in (m.source_field.id, m.dest_field.id):
            return KeyFieldMatcher(keys)
    return NullRecordMatcher()


class BackupWriter:
    def write(self, label: str, records: list[dict[str, Any]]) -> str:
        raise NotImplementedError


class JsonFileBackupWriter(BackupWriter):
    """Writes each snapshot to <backup_dir>/<label>-<UTC timestamp>.json."""

    def __init__(self, backup_dir: str | Path | None = None) -> None:
        self.backup_dir = Path(backup_dir or get_settings().backup_dir)

    def write(self, label: str, records: list[dict[str, Any]]) -> str:
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        path = self.backup_dir / f"{label.lower()}-{stamp}.json"
        with path.open("w", encoding="utf-8") as fh:
            json.dump(records, fh, indent=2, default=str)
        return str(path)


@dataclass
class PlannedWrite:
    values: dict[str, Any]
    action: str  # create | update | skip
    existing_id: str | None = None


# -----------------------------------------------------------------------------
# Orchestrator
# -----------------------------------------------------------------------------

def _default_attio_factory(conn: Connection) -> AttioService:
    return AttioService(access_token=conn.token)


def _default_airtable_factory(conn: Connection) -> AirtableService:
    return AirtableService(access_token=conn.token, base_id=conn.base_id)


class SyncService:
    """
    One orchestrator per sync session. Callbacks on_progress, on_log and on_stats
    are invoked synchronously while perform_sync runs.
    """

    def __init__(
        self,
        connection_store: ConnectionStore,
        field_mappings: list[FieldMapping] | None = None,
        config: SyncConfig | None = None,
        *,
        attio_factory: Callable[[Connection], Any] = _default_attio_factory,
        airtable_factory: Callable[[Connection], Any] = _default_airtable_factory,
        record_matcher: RecordMatcher | None = None,
        backup_writer: BackupWriter | None = None,
        transform_registry: TransformRegistry | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.connection_store = connection_store
        self.connections: dict[str, Connection] = {}
        self.field_mappings: list[FieldMapping] = list(field_mappings or [])
        self.config = config or SyncConfig()
        self.attio_factory = attio_factory
        self.airtable_factory = airtable_factory
        self.record_matcher = record_matcher
        self.backup_writer = backup_writer or JsonFileBackupWriter()
        self.transform_registry = transform_registry or default_registry
        self._sleep = sleep

        self.on_progress: Callable[[SyncProgress], None] = lambda progress: None
        self.on_log: Callable[[SyncLogEntry], None] = lambda entry: None
        self.on_stats: Callable[[SyncStats], None] = lambda stats: None

        self.state = SyncState.IDLE
        self.stats = SyncStats()
        self.logs: list[SyncLogEntry] = []
        self.backup_paths: list[str] = []
        self._run_lock = threading.Lock()

    # --- configuration between runs ---------------------------------------------

    def update_config(self, **changes: Any) -> SyncConfig:
        self.config = self.config.with_updates(**changes)
        return self.config

    def update_connections(self, connections: Mapping[str, Connection | dict[str, Any]] | None) -> None:
        self.connections = {
            service: conn if isinstance(conn, Connection) else Connection.model_validate(conn)
            for service, conn in (connections or {}).items()
        }

    def update_field_mappings(self, mappings: list[FieldMapping] | None) -> None:
        self.field_mappings = list(mappings or [])

    def reset(self) -> None:
        """Back to IDLE with cleared stats and log. Does not cancel an active run."""
        self.state = SyncState.IDLE
        self.stats = SyncStats()
        self.logs = []
        self.backup_paths = []

    # --- events --------------------------------------------------------------------

    def log(self, level: str, message: str) -> None:
        entry = SyncLogEntry(level=level, message=message)
        self.logs.append(entry)
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "[%s] %s", level.upper(), message)
        self.on_log(entry)

    def _update_progress(self, current: int, total: int, message: str) -> None:
        percent = round(current / total * 100) if total else 100
        self.on_progress(SyncProgress(current=current, total=total, progress=percent, message=message))

    def _emit_stats(self) -> None:
        self.on_stats(self.stats.model_copy())

    # --- public entry point ---------------------------------------------------------

    def perform_sync(
        self,
        connections: Mapping[str, Connection | dict[str, Any]] | None = None,
        field_mappings: list[FieldMapping] | None = None,
        config: SyncConfig | None = None,
        dry_run: bool = False,
    ) -> SyncStats:
        """
        Run one sync. Arguments replace the instance's connections, mappings and
        config for this and later runs. Returns the final stats; raises SyncError
        subclasses for configuration, fetch, backup and stop-on-error failures.
        """
        if not self._run_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync is already running")
        try:
            if connections is not None:
                self.update_connections(connections)
            if field_mappings is not None:
                self.update_field_mappings(field_mappings)
            if config is not None:
                self.config = config

            self.reset()
            self.state = SyncState.RUNNING
            try:
                self._run(self.config, dry_run)
            except Exception as e:
                self.state = SyncState.ERROR
                self.log("error", f"Sync failed: {e}")
                self._emit_stats()
                raise
            self.state = SyncState.COMPLETED
            return self.stats
        finally:
            self._run_lock.release()

    # --- run phases ------------------------------------------------------------------

    def _connection(self, service: str) -> Connection | None:
        conn = self.connections.get(service)
        if conn is not None and conn.connected and conn.token:
            return conn
        return self.connection_store.get_connection(service)

    def _validate(self, config: SyncConfig) -> tuple[Connection, Connection, dict[str, Any] | None]:
        attio_conn = self._connection(ATTIO)
        airtable_conn = self._connection(AIRTABLE)
        if not (attio_conn and attio_conn.connected and airtable_conn and airtable_conn.connected):
            raise SyncConfigError("Both Attio and Airtable must be connected before syncing")
        if not airtable_conn.base_id:
            raise SyncConfigError("Airtable connection has no base ID")
        if not config.attio_collection_id:
            raise SyncConfigError("No Attio object or list selected")
        if not config.airtable_table_id:
            raise SyncConfigError("Airtable table ID not configured")

        attio_filter = None
        if config.attio_filter:
            try:
                attio_filter = json.loads(config.attio_filter)
            except ValueError as e:
                raise SyncConfigError(f"Attio filter is not valid JSON: {e}") from e
            if not isinstance(attio_filter, dict):
                raise SyncConfigError("Attio filter must be a JSON object")

        try:
            for m in self.field_mappings:
                validate_transformations(m.transformations, self.transform_registry)
        except TransformConfigError as e:
            raise SyncConfigError(str(e)) from e

        complete = [m for m in self.field_mappings if m.enabled and m.is_complete]
        if not complete:
            self.log("warning", "No complete field mappings; every record will be skipped")
        incomplete = len(self.field_mappings) - len([m for m in self.field_mappings if m.is_complete])
        if incomplete:
            self.log("info", f"Ignoring {incomplete} incomplete mapping(s)")
        return attio_conn, airtable_conn, attio_filter

    def _run(self, config: SyncConfig, dry_run: bool) -> None:
        self.log("info", "Starting dry run..." if dry_run else "Starting sync process...")
        attio_conn, airtable_conn, attio_filter = self._validate(config)

        page_size = get_settings().sync_page_size
        attio = AttioEndpoint(self.attio_factory(attio_conn), config, page_size)
        airtable = AirtableEndpoint(self.airtable_factory(airtable_conn), config, page_size)
        filters = {ATTIO: attio_filter, AIRTABLE: config.airtable_filter}
        matcher = self.record_matcher or matcher_for(config.match_field, self.field_mappings)

        # list writes and snapshots need the parent object before any pass runs
        try:
            attio.resolve_parent(self.log)
        except GatewayError as e:
            raise SyncFetchError(f"Failed to resolve parent object for list {attio.list_id}: {e.message}") from e

        if config.direction == SyncDirection.ATTIO_TO_AIRTABLE:
            passes = [(attio, airtable)]
        elif config.direction == SyncDirection.AIRTABLE_TO_ATTIO:
            passes = [(airtable, attio)]
        else:
            passes = [(attio, airtable), (airtable, attio)]
            self.log(
                "warning",
                "Bidirectional sync runs Attio → Airtable, then Airtable → Attio; "
                "records created in the first pass may be copied back as new in the second",
            )

        if config.create_backups and not dry_run:
            self._create_backups([dest for _, dest in passes])

        for source, dest in passes:
            self._sync_pass(source, dest, config, filters[source.service], matcher, dry_run)

        prefix = "Dry run completed" if dry_run else "Sync completed"
        self.log("success", f"{prefix}: {self.stats.model_dump_json()}")
        self._emit_stats()

    def _create_backups(self, endpoints: list[Endpoint]) -> None:
        self.log("info", "Creating backups before sync...")
        try:
            for endpoint in endpoints:
                path = self.backup_writer.write(endpoint.label, endpoint.snapshot())
                self.backup_paths.append(path)
                self.log("info", f"Backed up {endpoint.label} records to {path}")
        except (GatewayError, OSError) as e:
            raise SyncBackupError(f"Backup failed, nothing was written: {e}") from e
        self.log("success", "Backups created successfully")

    def _sync_pass(
        self,
        source: Endpoint,
        dest: Endpoint,
        config: SyncConfig,
        source_filter: Any,
        matcher: RecordMatcher,
        dry_run: bool,
    ) -> None:
        self.log("info", f"Syncing from {source.label} to {dest.label}...")
        try:
            records = source.fetch_records(config.record_limit, source_filter, self.log)
        except GatewayError as e:
            self.log("error", f"Failed to sync from {source.label} to {dest.label}: {e.message}")
            raise SyncFetchError(f"Failed to fetch {source.label} records: {e.message}") from e
        if config.record_limit is not None:
            records = records[: config.record_limit]
        self.log("info", f"Fetched {len(records)} records from {source.label}")

        plans: list[PlannedWrite | None] = [None] * len(records)
        if dry_run or config.dry_run_first:
            plans, counts = self._preview(records, source, dest, config, matcher)
            if dry_run:
                # a dry run reports what would have happened
                self.stats.created += counts.created
                self.stats.updated += counts.updated
                self.stats.skipped += counts.skipped
                self.stats.errors += counts.errors
                self._emit_stats()
                self.log("success", f"{source.label} to {dest.label} dry run completed")
                return

        total = len(records)
        for i, record in enumerate(records):
            self._update_progress(i + 1, total, "Processing records")
            self._sync_record(record, plans[i], source, dest, config, matcher)
            self._emit_stats()
            self._sleep(config.rate_limit_delay_ms / 1000)

        self.log("success", f"{source.label} to {dest.label} sync completed")

    def _preview(
        self,
        records: list[dict[str, Any]],
        source: Endpoint,
        dest: Endpoint,
        config: SyncConfig,
        matcher: RecordMatcher,
    ) -> tuple[list[PlannedWrite | None], SyncStats]:
        """Plan every record without writing; in a dry run the plan is the result."""
        plans: list[PlannedWrite | None] = []
        counts = SyncStats()
        total = len(records)
        for i, record in enumerate(records):
            self._update_progress(i + 1, total, "Previewing records")
            try:
                plan = self._plan_record(record, source, dest, config, matcher)
            except GatewayError as e:
                self.log("warning", f"Could not plan record: {e.message}")
                counts.errors += 1
                plans.append(None)
                continue
            plans.append(plan)
            if plan.action == "create":
                counts.created += 1
            elif plan.action == "update":
                counts.updated += 1
            else:
                counts.skipped += 1
        self.log(
            "info",
            f"Dry run {source.label} → {dest.label}: would create {counts.created}, "
            f"update {counts.updated}, skip {counts.skipped}, errors {counts.errors}",
        )
        return plans, counts

    def map_record(self, record: dict[str, Any], source_service: str, dest_service: str) -> dict[str, Any]:
        """Extract and transform every complete, enabled mapping; blank values are omitted."""
        mapped: dict[str, Any] = {}
        for mapping in self.field_mappings:
            if not mapping.enabled or not mapping.is_complete:
                continue
            src = mapping_field(mapping, source_service)
            dst = mapping_field(mapping, dest_service)
            value = extract(record, field_key(src, source_service), source_service, alt_field_id=src.id)
            if is_blank(value):
                continue
            mapped[field_key(dst, dest_service)] = apply_transformations(
                value, mapping.transformations, self.transform_registry
            )
        self.log("debug", f"Mapped record: {json.dumps(mapped, default=str)}")
        return mapped

    def _plan_record(
        self,
        record: dict[str, Any],
        source: Endpoint,
        dest: Endpoint,
        config: SyncConfig,
        matcher: RecordMatcher,
    ) -> PlannedWrite:
        values = self.map_record(record, source.service, dest.service)
        if not values:
            return PlannedWrite(values=values, action="skip")
        if config.update_existing:
            existing_id = matcher.find(dest, values)
            if existing_id:
                return PlannedWrite(values=values, action="update", existing_id=existing_id)
        if config.create_new:
            return PlannedWrite(values=values, action="create")
        return PlannedWrite(values=values, action="skip")

    def _sync_record(
        self,
        record: dict[str, Any],
        plan: PlannedWrite | None,
        source: Endpoint,
        dest: Endpoint,
        config: SyncConfig,
        matcher: RecordMatcher,
    ) -> None:
        try:
            if plan is None:
                plan = self._plan_record(record, source, dest, config, matcher)
            if plan.action == "update":
                dest.update(plan.existing_id, plan.values)
                self.stats.updated += 1
                self.log("info", f"Updated {dest.label} record: {plan.existing_id}")
            elif plan.action == "create":
                new_id = dest.create(plan.values)
                self.stats.created += 1
                self.log("info", f"Created new {dest.label} record: {new_id or 'unknown'}")
            else:
                self.stats.skipped += 1
                if not plan.values:
                    self.log("warning", f"Skipped {source.label} record with no mapped values")
        except GatewayError as e:
            self.stats.errors += 1
            self.log("error", f"Failed to sync record: {e.message}")
            if config.stop_on_error:
                raise SyncAbortedError(f"Stopped on error: {e.message}") from e
