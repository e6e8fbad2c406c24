"""
Schema endpoints: selectable collections and fields per service, and creation of
new Airtable fields for unmapped Attio attributes.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from syncbridge.schemas.connection import AIRTABLE, SERVICES
from syncbridge.schemas.mapping import (
    CollectionListResponse,
    FieldCreate,
    FieldDescriptor,
    FieldListResponse,
)
from syncbridge.services.connection_store import ConnectionStore, get_connection_store
from syncbridge.services.connections import airtable_from_store, attio_from_store
from syncbridge.services.field_mapper import build_field_config, suggest_airtable_field_type
from syncbridge.services.gateway import GatewayError
from syncbridge.services.schema_fetcher import SchemaFetcher, airtable_field_from_schema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schema", tags=["schema"])


def get_schema_fetcher(store: ConnectionStore = Depends(get_connection_store)) -> SchemaFetcher:
    """Dependency: fetcher bound to whichever services are currently connected."""
    return SchemaFetcher(attio=attio_from_store(store), airtable=airtable_from_store(store))


def _require_known(service: str) -> None:
    if service not in SERVICES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown service: {service}",
        )


@router.get(
    "/{service}/collections",
    response_model=CollectionListResponse,
    summary="List collections",
    description="Attio objects and lists, or Airtable tables. Falls back to defaults with a warning on failure.",
)
def list_collections(
    service: str,
    fetcher: SchemaFetcher = Depends(get_schema_fetcher),
) -> CollectionListResponse:
    _require_known(service)
    collections = fetcher.list_collections(service)
    return CollectionListResponse(service=service, collections=collections, warnings=fetcher.warnings)


@router.get(
    "/{service}/collections/{collection_id}/fields",
    response_model=FieldListResponse,
    summary="List fields",
    description="Fields of one collection. For Attio lists, list attributes are merged with the parent object's.",
)
def list_fields(
    service: str,
    collection_id: str,
    fetcher: SchemaFetcher = Depends(get_schema_fetcher),
) -> FieldListResponse:
    _require_known(service)
    fields = fetcher.list_fields(service, collection_id)
    parent = None
    if service != AIRTABLE and fetcher.attio is not None:
        collection = fetcher.find_collection(collection_id)
        parent = collection.parent_object_kind if collection and collection.kind == "list" else None
    return FieldListResponse(
        service=service,
        collection_id=collection_id,
        fields=fields,
        parent_object_kind=parent,
        warnings=fetcher.warnings,
    )


@router.post(
    "/airtable/tables/{table_id}/fields",
    response_model=FieldDescriptor,
    status_code=status.HTTP_201_CREATED,
    summary="Create Airtable field",
    description="Create a new column, typically to receive an unmapped Attio field.",
)
def create_airtable_field(
    table_id: str,
    body: FieldCreate,
    store: ConnectionStore = Depends(get_connection_store),
) -> FieldDescriptor:
    airtable = airtable_from_store(store)
    if airtable is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Airtable is not connected",
        )
    field_type = body.type
    description = body.description
    if body.source_field is not None:
        if body.type == "singleLineText":
            field_type = suggest_airtable_field_type(body.source_field.type)
        description = description or f"Synced from Attio field: {body.source_field.name}"
    try:
        created = airtable.create_field(table_id, build_field_config(body.name, field_type, description))
    except GatewayError as e:
        logger.warning("Airtable field creation failed: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to create field: {e.message}",
        )
    logger.info("Created Airtable field %s in table %s", body.name, table_id)
    return airtable_field_from_schema(created)
