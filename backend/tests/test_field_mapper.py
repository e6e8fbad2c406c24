"""
Auto-mapping strategies and mapping-set edits.
"""

import pytest

from syncbridge.schemas.mapping import FieldDescriptor
from syncbridge.services.field_mapper import (
    FieldMapper,
    build_field_config,
    score_confidence,
    suggest_airtable_field_type,
)


def field(fid, name, ftype="text"):
    return FieldDescriptor(id=fid, name=name, type=ftype)


ATTIO_FIELDS = [
    field("email", "Email", "email-address"),
    field("name", "Name", "personal-name"),
    field("job_title", "Job title", "text"),
    field("linkedin", "LinkedIn", "text"),
]
AIRTABLE_FIELDS = [
    field("fldEmail", "Email Address", "email"),
    field("fldName", "Full Name", "singleLineText"),
    field("fldTitle", "Job Title", "singleLineText"),
]


def test_strict_maps_email_with_fixed_confidence():
    mappings = FieldMapper().auto_map(ATTIO_FIELDS[:1], AIRTABLE_FIELDS)

    assert len(mappings) == 1
    assert mappings[0].dest_field.name == "Email Address"
    assert mappings[0].confidence == 0.9


def test_strict_ignores_punctuation_and_case():
    mappings = FieldMapper().auto_map([field("job_title", "job-title")], AIRTABLE_FIELDS)

    assert mappings[0].dest_field.id == "fldTitle"


def test_strict_matches_email_types_with_unrelated_names():
    mappings = FieldMapper().auto_map(
        [field("primary", "Primary contact", "email-address")],
        [field("fldMail", "Mail", "email")],
    )

    assert len(mappings) == 1


def test_empty_names_do_not_match_everything():
    mappings = FieldMapper().auto_map([field("x", "123")], AIRTABLE_FIELDS)
    assert mappings == []


def test_scored_exact_name_scores_at_least_point_eight():
    mappings = FieldMapper().auto_map(
        [field("title", "Job Title", "text")], AIRTABLE_FIELDS, strategy="scored"
    )

    assert mappings[0].confidence >= 0.8
    assert mappings[0].confidence <= 1.0


def test_scored_confidence_capped():
    same = field("a", "Email", "email")
    assert score_confidence(same, same) == 1.0
    assert score_confidence(field("a", "Email", "email"), field("b", "Email Address", "singleLineText")) == 0.0


def test_first_destination_match_wins():
    dest = [field("f1", "Name (legal)"), field("f2", "Name")]
    mappings = FieldMapper().auto_map([field("name", "Name")], dest)

    assert mappings[0].dest_field.id == "f1"


def test_auto_map_replaces_and_reports_unmapped():
    mapper = FieldMapper()
    mapper.add()
    mapper.auto_map(ATTIO_FIELDS, AIRTABLE_FIELDS)

    assert all(m.is_complete for m in mapper.mappings)
    assert [f.id for f in mapper.unmapped_fields(ATTIO_FIELDS)] == ["linkedin"]


def test_add_update_remove():
    mapper = FieldMapper()
    mapping = mapper.add()
    assert not mapping.is_complete

    mapper.update(mapping.id, "source_field", ATTIO_FIELDS[0])
    updated = mapper.update(mapping.id, "dest_field", AIRTABLE_FIELDS[0])

    assert updated.is_complete
    assert mapper.get(mapping.id).dest_field.id == "fldEmail"
    assert mapper.complete_mappings() == [updated]

    mapper.remove(mapping.id)
    assert mapper.mappings == []


def test_update_rejects_bad_key_and_unknown_id():
    mapper = FieldMapper()
    mapping = mapper.add()
    with pytest.raises(ValueError):
        mapper.update(mapping.id, "id", "other")
    with pytest.raises(KeyError):
        mapper.update("missing", "enabled", False)


def test_field_config_for_new_airtable_column():
    assert suggest_airtable_field_type("email-address") == "email"
    assert suggest_airtable_field_type("unknown-type") == "singleLineText"

    config = build_field_config("Stage", "singleSelect", "Deal stage")
    assert config["type"] == "singleSelect"
    assert len(config["options"]["choices"]) == 3
    assert config["description"] == "Deal stage"
    assert "options" not in build_field_config("Notes")
