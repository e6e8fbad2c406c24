"""
Schema and field-mapping models: collections, fields, transforms, mappings.
"""

import uuid
from typing import Any, Literal

from pydantic import BaseModel, Field

CollectionKind = Literal["object", "list", "table"]

TransformType = Literal[
    "uppercase",
    "lowercase",
    "trim",
    "dateFormat",
    "numberFormat",
    "boolean",
    "custom",
]


class CollectionDescriptor(BaseModel):
    """An Attio object, an Attio list, or an Airtable table."""
    id: str
    name: str
    kind: CollectionKind
    parent_object_kind: str | None = None
    api_slug: str | None = None
    description: str | None = None


class FieldDescriptor(BaseModel):
    """Single field of a collection. is_core=False marks list-level (not object) fields."""
    id: str
    name: str
    type: str = "text"
    description: str | None = None
    is_core: bool = True
    options: dict[str, Any] | None = None


class TransformSpec(BaseModel):
    """One step of a transformation chain. For 'custom', function names a registered plugin."""
    type: TransformType
    format: str | None = None
    function: str | None = None


def _new_mapping_id() -> str:
    return uuid.uuid4().hex


class FieldMapping(BaseModel):
    """
    Attio field <-> Airtable field correspondence.
    source_field is the Attio-side field and dest_field the Airtable-side field;
    airtable-to-attio runs read dest_field and write source_field.
    """
    id: str = Field(default_factory=_new_mapping_id)
    source_field: FieldDescriptor | None = None
    dest_field: FieldDescriptor | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    transformations: list[TransformSpec] = Field(default_factory=list)
    enabled: bool = True

    @property
    def is_complete(self) -> bool:
        return self.source_field is not None and self.dest_field is not None


class AutoMapRequest(BaseModel):
    source_fields: list[FieldDescriptor]
    dest_fields: list[FieldDescriptor]
    strategy: Literal["strict", "scored"] = "strict"


class AutoMapResponse(BaseModel):
    mappings: list[FieldMapping]
    unmapped: list[FieldDescriptor]


class CollectionListResponse(BaseModel):
    service: str
    collections: list[CollectionDescriptor]
    warnings: list[str] = []


class FieldListResponse(BaseModel):
    service: str
    collection_id: str
    fields: list[FieldDescriptor]
    parent_object_kind: str | None = None
    warnings: list[str] = []


class FieldCreate(BaseModel):
    """Request body for creating a new Airtable field."""
    name: str = Field(..., min_length=1)
    type: str = "singleLineText"
    description: str | None = None
    source_field: FieldDescriptor | None = Field(
        None, description="Attio field the new column mirrors; used to suggest type and description"
    )


class TransformCatalogResponse(BaseModel):
    types: list[str]
    plugins: list[str]
