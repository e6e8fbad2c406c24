"""
Field mapper: ordered Attio <-> Airtable mapping set with a name/type auto-mapper.
"""

import logging
import re
from typing import Any, Literal

from syncbridge.schemas.mapping import FieldDescriptor, FieldMapping

logger = logging.getLogger(__name__)

MatchStrategy = Literal["strict", "scored"]

STRICT_CONFIDENCE = 0.9
EXACT_NAME_SCORE = 0.8
SAME_TYPE_SCORE = 0.2

EMAIL_TYPES = frozenset({"email", "email-address"})

# Attio attribute type -> Airtable field type for new destination fields
AIRTABLE_TYPE_FOR_ATTIO = {
    "email-address": "email",
    "phone-number": "phoneNumber",
    "url": "url",
    "domain": "url",
    "text": "singleLineText",
    "single-line-text": "singleLineText",
    "multi-line-text": "multilineText",
    "number": "number",
    "currency": "currency",
    "date": "date",
    "timestamp": "dateTime",
    "datetime": "dateTime",
    "checkbox": "checkbox",
    "select": "singleSelect",
    "status": "singleSelect",
    "rating": "rating",
}

_SELECT_TYPES = ("singleSelect", "multipleSelects")


def _alpha(name: str) -> str:
    return re.sub(r"[^a-z]", "", name.lower())


def strict_match(source: FieldDescriptor, dest: FieldDescriptor) -> bool:
    """Letters-only names contained in one another, or both fields email-typed."""
    a, b = _alpha(source.name), _alpha(dest.name)
    if a and b and (a in b or b in a):
        return True
    return source.type in EMAIL_TYPES and dest.type in EMAIL_TYPES


def scored_match(source: FieldDescriptor, dest: FieldDescriptor) -> bool:
    """Case-folded names equal or contained in one another."""
    a, b = source.name.casefold(), dest.name.casefold()
    if not a or not b:
        return False
    return a == b or a in b or b in a


def score_confidence(source: FieldDescriptor, dest: FieldDescriptor) -> float:
    score = 0.0
    if source.name.casefold() == dest.name.casefold():
        score += EXACT_NAME_SCORE
    if source.type == dest.type:
        score += SAME_TYPE_SCORE
    return min(round(score, 2), 1.0)


def suggest_airtable_field_type(attio_type: str | None) -> str:
    return AIRTABLE_TYPE_FOR_ATTIO.get(attio_type or "", "singleLineText")


def build_field_config(
    name: str,
    field_type: str = "singleLineText",
    description: str | None = None,
) -> dict[str, Any]:
    """Airtable create-field payload. Select fields need at least one choice."""
    config: dict[str, Any] = {"name": name, "type": field_type}
    if field_type in _SELECT_TYPES:
        config["options"] = {"choices": [{"name": "Option 1"}, {"name": "Option 2"}, {"name": "Option 3"}]}
    if description:
        config["description"] = description
    return config


class FieldMapper:
    """Holds the mapping set for one sync session. Order is kept for display only."""

    def __init__(self, mappings: list[FieldMapping] | None = None) -> None:
        self.mappings: list[FieldMapping] = list(mappings or [])

    def auto_map(
        self,
        source_fields: list[FieldDescriptor],
        dest_fields: list[FieldDescriptor],
        strategy: MatchStrategy = "strict",
    ) -> list[FieldMapping]:
        """
        Propose one mapping per source field that has a match; the first matching
        destination field wins. Replaces the held mapping set.
        """
        matcher = strict_match if strategy == "strict" else scored_match
        proposed: list[FieldMapping] = []
        for source in source_fields:
            dest = next((d for d in dest_fields if matcher(source, d)), None)
            if dest is None:
                continue
            confidence = STRICT_CONFIDENCE if strategy == "strict" else score_confidence(source, dest)
            proposed.append(FieldMapping(source_field=source, dest_field=dest, confidence=confidence))
        logger.info("Auto-mapped %d of %d fields (%s)", len(proposed), len(source_fields), strategy)
        self.mappings = proposed
        return proposed

    def unmapped_fields(self, source_fields: list[FieldDescriptor]) -> list[FieldDescriptor]:
        mapped = {m.source_field.id for m in self.mappings if m.source_field is not None}
        return [f for f in source_fields if f.id not in mapped]

    def add(self) -> FieldMapping:
        mapping = FieldMapping()
        self.mappings.append(mapping)
        return mapping

    def remove(self, mapping_id: str) -> None:
        self.mappings = [m for m in self.mappings if m.id != mapping_id]

    def get(self, mapping_id: str) -> FieldMapping | None:
        return next((m for m in self.mappings if m.id == mapping_id), None)

    def update(self, mapping_id: str, key: str, value: Any) -> FieldMapping:
        """Patch one attribute of one mapping (validated). KeyError if the id is unknown."""
        for i, m in enumerate(self.mappings):
            if m.id == mapping_id:
                if key == "id" or key not in FieldMapping.model_fields:
                    raise ValueError(f"Cannot update mapping attribute: {key}")
                data = m.model_dump()
                data[key] = value
                updated = FieldMapping.model_validate(data)
                self.mappings[i] = updated
                return updated
        raise KeyError(mapping_id)

    def replace(self, mappings: list[FieldMapping]) -> None:
        self.mappings = list(mappings)

    def complete_mappings(self) -> list[FieldMapping]:
        """Enabled mappings with both fields chosen."""
        return [m for m in self.mappings if m.enabled and m.is_complete]
