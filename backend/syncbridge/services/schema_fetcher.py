"""
Schema fetcher: syncable collections and their fields for Attio and Airtable.

Attio lists are views over an underlying object; their field set is the union of
the list's own attributes and the parent object's attributes. The parent object
is read from the list metadata or, failing that, guessed from the list name.

Fetch failures never propagate: built-in stand-ins are returned and a warning is
recorded on the fetcher so the caller can surface it.
"""

import logging
from typing import Any, Iterable

from syncbridge.schemas.connection import AIRTABLE, ATTIO
from syncbridge.schemas.mapping import CollectionDescriptor, FieldDescriptor
from syncbridge.services.airtable_service import AirtableService
from syncbridge.services.attio_service import AttioService
from syncbridge.services.gateway import GatewayError

logger = logging.getLogger(__name__)

PEOPLE = "people"
COMPANIES = "companies"

_PEOPLE_HINTS = ("people", "person", "contact", "lead", "prospect")
_COMPANY_HINTS = ("compan", "account", "organization", "business")

FALLBACK_ATTIO_COLLECTIONS = [
    CollectionDescriptor(id="people", name="People", kind="object", api_slug="people"),
    CollectionDescriptor(id="companies", name="Companies", kind="object", api_slug="companies"),
    CollectionDescriptor(id="deals", name="Deals", kind="object", api_slug="deals"),
]

FALLBACK_AIRTABLE_TABLES = [
    CollectionDescriptor(id="tblContacts", name="Contacts", kind="table"),
]

FALLBACK_AIRTABLE_FIELDS = [
    FieldDescriptor(id="fldEmail", name="Email Address", type="email"),
    FieldDescriptor(id="fldFirstName", name="First Name", type="singleLineText"),
    FieldDescriptor(id="fldLastName", name="Last Name", type="singleLineText"),
    FieldDescriptor(id="fldCompany", name="Company Name", type="singleLineText"),
    FieldDescriptor(id="fldPhone", name="Phone Number", type="phoneNumber"),
]

FALLBACK_ATTIO_FIELDS = [
    FieldDescriptor(id="name", name="Name", type="text"),
    FieldDescriptor(id="email_addresses", name="Email addresses", type="email-address"),
    FieldDescriptor(id="phone_numbers", name="Phone numbers", type="phone-number"),
    FieldDescriptor(id="domains", name="Domains", type="domain"),
]


# -----------------------------------------------------------------------------
# Pure helpers (no network)
# -----------------------------------------------------------------------------

def _slug_or_id(ref: Any) -> str | None:
    if isinstance(ref, str):
        return ref or None
    if isinstance(ref, dict):
        slug = ref.get("api_slug") or ref.get("id")
        if isinstance(slug, dict):
            slug = slug.get("object_id")
        return slug or None
    return None


def resolve_parent_object_kind(list_metadata: dict[str, Any] | None) -> str | None:
    """
    Parent object declared on list metadata, checked in priority order:
    parent_object (list, str or object), workspace_object, object, parent_object_type.
    """
    if not list_metadata:
        return None
    parent = list_metadata.get("parent_object")
    if parent:
        if isinstance(parent, list):
            return _slug_or_id(parent[0]) if parent else None
        return _slug_or_id(parent)
    for key in ("workspace_object", "object"):
        if list_metadata.get(key):
            return _slug_or_id(list_metadata[key])
    parent_type = list_metadata.get("parent_object_type")
    return parent_type or None


def guess_object_kind_from_name(name: str | None) -> str:
    """People-like names map to people, company-like names to companies; default people."""
    lowered = (name or "").lower()
    if any(hint in lowered for hint in _PEOPLE_HINTS):
        return PEOPLE
    if any(hint in lowered for hint in _COMPANY_HINTS):
        return COMPANIES
    return PEOPLE


def match_object_collection(
    kind: str,
    collections: Iterable[CollectionDescriptor],
) -> CollectionDescriptor | None:
    """Find the object collection for kind by id, api_slug, name, or singular/plural name."""
    lowered = kind.lower()
    objects = [c for c in collections if c.kind == "object"]
    for c in objects:
        if c.id == kind or c.api_slug == kind:
            return c
    for c in objects:
        if c.name.lower() == lowered:
            return c
    for c in objects:
        if _singular(c.name.lower()) == _singular(lowered):
            return c
    return None


def _singular(word: str) -> str:
    if word == "people":
        return "person"
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("s"):
        return word[:-1]
    return word


def merge_list_fields(
    list_fields: list[FieldDescriptor],
    core_fields: list[FieldDescriptor],
) -> list[FieldDescriptor]:
    """List fields first (is_core=False), then core fields not already present (is_core=True)."""
    merged = [f.model_copy(update={"is_core": False}) for f in list_fields]
    seen = {f.id for f in list_fields}
    for f in core_fields:
        if f.id not in seen:
            merged.append(f.model_copy(update={"is_core": True}))
            seen.add(f.id)
    return merged


def attio_field_from_attribute(attr: dict[str, Any], is_core: bool = True) -> FieldDescriptor:
    slug = attr.get("api_slug")
    if not slug:
        ref = attr.get("id")
        slug = ref.get("attribute_id") if isinstance(ref, dict) else ref
    slug = slug or ""
    return FieldDescriptor(
        id=slug,
        name=attr.get("title") or attr.get("name") or slug,
        type=attr.get("type") or "text",
        description=attr.get("description"),
        is_core=is_core,
    )


def airtable_field_from_schema(field: dict[str, Any]) -> FieldDescriptor:
    return FieldDescriptor(
        id=field.get("id") or field.get("name") or "",
        name=field.get("name") or field.get("id") or "",
        type=field.get("type") or "singleLineText",
        description=field.get("description") or None,
        options=field.get("options"),
    )


# -----------------------------------------------------------------------------
# Fetcher
# -----------------------------------------------------------------------------

class SchemaFetcher:
    """Populates selectable collections and fields; degrades to stand-ins on failure."""

    def __init__(
        self,
        attio: AttioService | None = None,
        airtable: AirtableService | None = None,
    ) -> None:
        self.attio = attio
        self.airtable = airtable
        self.warnings: list[str] = []
        self._attio_collections: list[CollectionDescriptor] = []

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def list_collections(self, service: str) -> list[CollectionDescriptor]:
        if service == ATTIO:
            return self._list_attio_collections()
        if service == AIRTABLE:
            return self._list_airtable_tables()
        self._warn(f"Unknown service: {service}")
        return []

    def list_fields(self, service: str, collection_id: str) -> list[FieldDescriptor]:
        if service == ATTIO:
            return self._list_attio_fields(collection_id)
        if service == AIRTABLE:
            return self._list_airtable_fields(collection_id)
        self._warn(f"Unknown service: {service}")
        return []

    # --- Attio -------------------------------------------------------------------

    def _list_attio_collections(self) -> list[CollectionDescriptor]:
        if self.attio is None:
            self._warn("Attio is not connected; showing default objects")
            self._attio_collections = list(FALLBACK_ATTIO_COLLECTIONS)
            return self._attio_collections
        try:
            objects = self.attio.list_objects()
            lists = self.attio.list_lists()
        except GatewayError as e:
            self._warn(f"Failed to load Attio objects and lists: {e.message}")
            self._attio_collections = list(FALLBACK_ATTIO_COLLECTIONS)
            return self._attio_collections

        collections = [
            CollectionDescriptor(
                id=obj.get("api_slug") or _slug_or_id(obj.get("id")) or "",
                name=obj.get("plural_noun") or obj.get("singular_noun") or obj.get("name") or obj.get("api_slug") or "",
                kind="object",
                api_slug=obj.get("api_slug"),
                description=obj.get("description"),
            )
            for obj in objects
        ]
        for lst in lists:
            list_ref = lst.get("id")
            collections.append(
                CollectionDescriptor(
                    id=lst.get("api_slug") or (list_ref.get("list_id") if isinstance(list_ref, dict) else list_ref) or "",
                    name=lst.get("name") or lst.get("api_slug") or "",
                    kind="list",
                    api_slug=lst.get("api_slug"),
                    description=lst.get("description"),
                    parent_object_kind=resolve_parent_object_kind(lst),
                )
            )
        logger.info(
            "Loaded %d Attio objects and %d lists",
            len(objects),
            len(lists),
        )
        self._attio_collections = collections
        return collections

    def _known_attio_collections(self) -> list[CollectionDescriptor]:
        if not self._attio_collections:
            self._list_attio_collections()
        return self._attio_collections

    def find_collection(self, collection_id: str) -> CollectionDescriptor | None:
        """Known Attio collection by id, loading the collection list if needed."""
        return next((c for c in self._known_attio_collections() if c.id == collection_id), None)

    def _attio_object_fields(self, object_id: str) -> list[FieldDescriptor]:
        return [attio_field_from_attribute(a, is_core=True) for a in self.attio.list_object_attributes(object_id)]

    def _list_attio_fields(self, collection_id: str) -> list[FieldDescriptor]:
        if self.attio is None:
            self._warn("Attio is not connected; showing default fields")
            return list(FALLBACK_ATTIO_FIELDS)
        collection = self.find_collection(collection_id)
        try:
            if collection is not None and collection.kind == "list":
                return self._list_attio_list_fields(collection)
            return self._attio_object_fields(collection_id)
        except GatewayError as e:
            self._warn(f"Failed to load Attio fields for {collection_id}: {e.message}")
            return list(FALLBACK_ATTIO_FIELDS)

    def resolve_list_parent(self, collection: CollectionDescriptor, list_metadata: dict[str, Any] | None) -> str:
        """Declared parent kind, else a name-based guess, resolved to an addressable object id."""
        kind = resolve_parent_object_kind(list_metadata)
        if kind:
            logger.info("List %s declares parent object %s", collection.id, kind)
        else:
            name = (list_metadata or {}).get("name") or collection.name
            kind = guess_object_kind_from_name(name)
            logger.info("List %s has no parent object reference; guessed %s from name", collection.id, kind)
        match = match_object_collection(kind, self._known_attio_collections())
        return (match.api_slug or match.id) if match else kind

    def _list_attio_list_fields(self, collection: CollectionDescriptor) -> list[FieldDescriptor]:
        list_metadata = self.attio.get_list(collection.id)
        list_fields = [
            attio_field_from_attribute(a, is_core=False)
            for a in self.attio.list_list_attributes(collection.id)
        ]
        parent = self.resolve_list_parent(collection, list_metadata)
        collection.parent_object_kind = parent
        try:
            core_fields = self._attio_object_fields(parent)
        except GatewayError as e:
            self._warn(f"Failed to load core {parent} fields: {e.message}")
            core_fields = []
        merged = merge_list_fields(list_fields, core_fields)
        logger.info(
            "Combined fields for list %s: %d list + %d core = %d",
            collection.id,
            len(list_fields),
            len(merged) - len(list_fields),
            len(merged),
        )
        return merged

    # --- Airtable ----------------------------------------------------------------

    def _list_airtable_tables(self) -> list[CollectionDescriptor]:
        if self.airtable is None:
            self._warn("Airtable is not connected; showing default tables")
            return list(FALLBACK_AIRTABLE_TABLES)
        try:
            tables = self.airtable.list_tables()
        except GatewayError as e:
            self._warn(f"Failed to load Airtable tables: {e.message}")
            return list(FALLBACK_AIRTABLE_TABLES)
        return [
            CollectionDescriptor(
                id=t.get("id") or "",
                name=t.get("name") or t.get("id") or "",
                kind="table",
                description=t.get("description") or None,
            )
            for t in tables
        ]

    def _list_airtable_fields(self, table_id: str) -> list[FieldDescriptor]:
        if self.airtable is None:
            self._warn("Airtable is not connected; showing default fields")
            return list(FALLBACK_AIRTABLE_FIELDS)
        try:
            fields = self.airtable.get_table_fields(table_id)
        except GatewayError as e:
            self._warn(f"Failed to load Airtable fields: {e.message}")
            return list(FALLBACK_AIRTABLE_FIELDS)
        if not fields:
            self._warn(f"Airtable table {table_id} not found or has no fields")
            return list(FALLBACK_AIRTABLE_FIELDS)
        return [airtable_field_from_schema(f) for f in fields]
