"""
Transformation chains and the plugin registry.
"""

import pytest

from syncbridge.schemas.mapping import TransformSpec
from syncbridge.services.transformer import (
    TransformConfigError,
    TransformRegistry,
    apply_transformations,
    default_registry,
    to_iso_instant,
    validate_transformations,
)


def specs(*types, **kwargs):
    return [TransformSpec(type=t, **kwargs) for t in types]


def test_empty_chain_is_identity():
    value = {"nested": ["x"]}
    assert apply_transformations(value, []) is value
    assert apply_transformations("abc", None) == "abc"


def test_chain_applies_in_order():
    assert apply_transformations("  Mixed Case  ", specs("trim", "uppercase")) == "MIXED CASE"
    assert apply_transformations("ABC", specs("lowercase")) == "abc"


def test_date_format_outputs_utc_instant():
    assert apply_transformations("2024-03-05", specs("dateFormat")) == "2024-03-05T00:00:00.000Z"
    assert to_iso_instant("2024-03-05T10:15:30+02:00") == "2024-03-05T08:15:30.000Z"
    assert to_iso_instant("2024-03-05T10:15:30.123456Z") == "2024-03-05T10:15:30.123Z"
    assert to_iso_instant(0) == "1970-01-01T00:00:00.000Z"


def test_number_format():
    assert apply_transformations("1,234", specs("numberFormat")) == 1234
    assert apply_transformations("12.5", specs("numberFormat")) == 12.5


def test_boolean():
    assert apply_transformations("yes", specs("boolean")) is True
    assert apply_transformations("", specs("boolean")) is False


def test_failed_coercion_passes_value_through():
    assert apply_transformations("not a date", specs("dateFormat")) == "not a date"
    assert apply_transformations("n/a", specs("numberFormat")) == "n/a"


def test_custom_plugin_from_default_registry():
    chain = [TransformSpec(type="custom", function="domain_from_email")]
    assert apply_transformations("ada@acme.com", chain) == "acme.com"


def test_custom_without_function_is_identity():
    assert apply_transformations("x", [TransformSpec(type="custom")]) == "x"


def test_registry_decorator():
    registry = TransformRegistry()

    @registry.register("double")
    def double(value):
        return value * 2

    assert "double" in registry
    assert registry.names() == ["double"]
    assert apply_transformations(3, [TransformSpec(type="custom", function="double")], registry) == 6


def test_failing_plugin_passes_value_through():
    registry = TransformRegistry()
    registry.register("boom", lambda value: 1 / 0)
    assert apply_transformations(5, [TransformSpec(type="custom", function="boom")], registry) == 5


def test_unknown_plugin_rejected_up_front():
    with pytest.raises(TransformConfigError, match="nope"):
        validate_transformations([TransformSpec(type="custom", function="nope")])


def test_unknown_plugin_at_apply_time_raises():
    with pytest.raises(TransformConfigError):
        apply_transformations("x", [TransformSpec(type="custom", function="nope")])


def test_default_plugins():
    assert set(default_registry.names()) >= {"slugify", "strip_non_digits", "title_case", "domain_from_email", "first_word"}
    assert default_registry.get("slugify")("Hello, World!") == "hello-world"
    assert default_registry.get("strip_non_digits")("+1 (555) 010-0100") == "15550100100"
