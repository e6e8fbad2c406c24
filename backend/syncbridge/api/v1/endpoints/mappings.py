"""
Field mapping endpoints: auto-map proposal and the transform catalogue.
"""

from fastapi import APIRouter

from syncbridge.schemas.mapping import AutoMapRequest, AutoMapResponse, TransformCatalogResponse
from syncbridge.services.field_mapper import FieldMapper
from syncbridge.services.transformer import BUILTIN_TYPES, default_registry

router = APIRouter(prefix="/mappings", tags=["mappings"])


@router.post(
    "/auto",
    response_model=AutoMapResponse,
    summary="Auto-map fields",
    description="Propose Attio → Airtable mappings by name and type. Unmatched source fields are returned separately.",
)
def auto_map(body: AutoMapRequest) -> AutoMapResponse:
    mapper = FieldMapper()
    mappings = mapper.auto_map(body.source_fields, body.dest_fields, strategy=body.strategy)
    return AutoMapResponse(mappings=mappings, unmapped=mapper.unmapped_fields(body.source_fields))


@router.get(
    "/transforms",
    response_model=TransformCatalogResponse,
    summary="List transforms",
)
def list_transforms() -> TransformCatalogResponse:
    return TransformCatalogResponse(types=list(BUILTIN_TYPES), plugins=default_registry.names())
