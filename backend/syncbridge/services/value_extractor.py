"""
Value extraction: decode one field of a raw Attio or Airtable record into a scalar.

Attio stores each attribute under record["values"][slug] as a list of typed value
objects. The first entry is classified into a known shape and decoded by the
matching decoder; anything else is "unrecognized" and yields None.
Airtable records are flat: record["fields"][name].
"""

import logging
from enum import Enum
from typing import Any, Callable

from syncbridge.schemas.connection import AIRTABLE, ATTIO

logger = logging.getLogger(__name__)

Scalar = str | int | float | bool


class ValueShape(str, Enum):
    TEXT = "text"
    DOMAIN = "domain"
    EMAIL = "email"
    URL = "url"
    PHONE = "phone"
    CURRENCY = "currency"
    SELECT = "select"
    STATUS = "status"
    REFERENCE = "reference"
    LOCATION = "location"
    PERSONAL_NAME = "personal_name"
    SCALAR = "scalar"
    EMPTY = "empty"
    UNRECOGNIZED = "unrecognized"


def classify_attio_value(entry: Any) -> ValueShape:
    """Tag the first value object of an Attio attribute. Order matters: first match wins."""
    if entry is None:
        return ValueShape.EMPTY
    if isinstance(entry, (str, int, float, bool)):
        return ValueShape.SCALAR
    if not isinstance(entry, dict):
        return ValueShape.UNRECOGNIZED
    if "value" in entry:
        return ValueShape.TEXT
    if entry.get("domain"):
        return ValueShape.DOMAIN
    if entry.get("email_address"):
        return ValueShape.EMAIL
    if entry.get("original_url"):
        return ValueShape.URL
    if entry.get("phone_number") or entry.get("original_phone_number"):
        return ValueShape.PHONE
    if "currency_value" in entry:
        return ValueShape.CURRENCY
    if isinstance(entry.get("option"), dict):
        return ValueShape.SELECT
    if isinstance(entry.get("status"), dict):
        return ValueShape.STATUS
    if entry.get("target_object") and entry.get("target_record_id"):
        return ValueShape.REFERENCE
    if entry.get("locality") or entry.get("region"):
        return ValueShape.LOCATION
    if entry.get("full_name") or entry.get("first_name") or entry.get("last_name"):
        return ValueShape.PERSONAL_NAME
    return ValueShape.UNRECOGNIZED


def _decode_location(entry: dict[str, Any]) -> str:
    parts = [entry.get("locality"), entry.get("region")]
    return ", ".join(str(p) for p in parts if p)


def _decode_personal_name(entry: dict[str, Any]) -> str:
    if entry.get("full_name"):
        return entry["full_name"]
    return " ".join(p for p in (entry.get("first_name"), entry.get("last_name")) if p)


_DECODERS: dict[ValueShape, Callable[[Any], Any]] = {
    ValueShape.TEXT: lambda e: e["value"],
    ValueShape.DOMAIN: lambda e: e["domain"],
    ValueShape.EMAIL: lambda e: e["email_address"],
    ValueShape.URL: lambda e: e["original_url"],
    ValueShape.PHONE: lambda e: e.get("original_phone_number") or e.get("phone_number"),
    ValueShape.CURRENCY: lambda e: e["currency_value"],
    ValueShape.SELECT: lambda e: e["option"].get("title"),
    ValueShape.STATUS: lambda e: e["status"].get("title"),
    ValueShape.REFERENCE: lambda e: e.get("referenced_actor_name") or e["target_record_id"],
    ValueShape.LOCATION: _decode_location,
    ValueShape.PERSONAL_NAME: _decode_personal_name,
    ValueShape.SCALAR: lambda e: e,
    ValueShape.EMPTY: lambda e: None,
    ValueShape.UNRECOGNIZED: lambda e: None,
}


def decode_attio_value(entry: Any) -> Any:
    shape = classify_attio_value(entry)
    if shape is ValueShape.UNRECOGNIZED:
        logger.debug("Unrecognized Attio value shape: %r", entry)
    return _DECODERS[shape](entry)


def extract_attio_value(record: dict[str, Any], field_id: str) -> Any:
    values = record.get("values")
    if not isinstance(values, dict) or field_id not in values:
        return None
    field_data = values[field_id]
    if isinstance(field_data, list):
        if not field_data:
            return None
        return decode_attio_value(field_data[0])
    if isinstance(field_data, (str, int, float, bool)):
        return field_data
    return None


def extract_airtable_value(record: dict[str, Any], field_key: str, field_id: str | None = None) -> Any:
    """Direct lookup by field name, falling back to field id."""
    fields = record.get("fields")
    if not isinstance(fields, dict):
        return None
    if field_key in fields:
        return fields[field_key]
    if field_id and field_id in fields:
        return fields[field_id]
    return None


def extract(record: Any, field_id: str, source_service: str, alt_field_id: str | None = None) -> Any:
    """
    Extract one field's value from a raw record of source_service.
    Never raises: malformed payloads degrade to None.
    """
    if not isinstance(record, dict):
        logger.debug("Record is not an object: %r", record)
        return None
    try:
        if source_service == ATTIO:
            return extract_attio_value(record, field_id)
        if source_service == AIRTABLE:
            return extract_airtable_value(record, field_id, alt_field_id)
    except (AttributeError, KeyError, TypeError) as e:
        logger.debug("Extraction of %s from %s record failed: %s", field_id, source_service, e)
        return None
    logger.debug("Unknown source service %s", source_service)
    return None


def is_blank(value: Any) -> bool:
    """None, empty string and empty lists are omitted from mapped output."""
    return value is None or value == "" or value == []
