"""
Value transformations applied between extraction and write.

Built-in steps cover case folding, trimming, date normalisation and numeric /
boolean coercion. "custom" steps name a plugin registered in a TransformRegistry;
caller-supplied code is never evaluated.
"""

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Callable, Iterable

from syncbridge.schemas.mapping import TransformSpec

logger = logging.getLogger(__name__)

TransformFn = Callable[[Any], Any]

BUILTIN_TYPES = ("uppercase", "lowercase", "trim", "dateFormat", "numberFormat", "boolean", "custom")


class TransformConfigError(ValueError):
    """Raised at configuration time for an unknown transform type or plugin."""


class TransformRegistry:
    """Named, pure single-argument transform plugins."""

    def __init__(self) -> None:
        self._plugins: dict[str, TransformFn] = {}

    def register(self, name: str, fn: TransformFn | None = None):
        """Register fn under name; usable as a decorator when fn is omitted."""
        if fn is None:
            def decorator(func: TransformFn) -> TransformFn:
                self._plugins[name] = func
                return func
            return decorator
        self._plugins[name] = fn
        return fn

    def get(self, name: str) -> TransformFn | None:
        return self._plugins.get(name)

    def names(self) -> list[str]:
        return sorted(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins


default_registry = TransformRegistry()


@default_registry.register("slugify")
def _slugify(value: Any) -> str:
    return re.sub(r"[^a-z0-9]+", "-", str(value).lower()).strip("-")


@default_registry.register("strip_non_digits")
def _strip_non_digits(value: Any) -> str:
    return re.sub(r"\D", "", str(value))


@default_registry.register("title_case")
def _title_case(value: Any) -> str:
    return str(value).title()


@default_registry.register("domain_from_email")
def _domain_from_email(value: Any) -> str:
    text = str(value)
    return text.rsplit("@", 1)[1] if "@" in text else text


@default_registry.register("first_word")
def _first_word(value: Any) -> str:
    parts = str(value).split()
    return parts[0] if parts else ""


def to_iso_instant(value: Any) -> str:
    """Normalise ISO text, date/datetime or epoch milliseconds to YYYY-MM-DDTHH:MM:SS.mmmZ."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip().replace(",", "")
    number = float(text)
    return int(number) if number.is_integer() and "." not in text and "e" not in text.lower() else number


def _apply_one(value: Any, spec: TransformSpec, registry: TransformRegistry) -> Any:
    kind = spec.type
    if kind == "uppercase":
        return str(value).upper()
    if kind == "lowercase":
        return str(value).lower()
    if kind == "trim":
        return str(value).strip()
    if kind == "dateFormat":
        return to_iso_instant(value)
    if kind == "numberFormat":
        return to_number(value)
    if kind == "boolean":
        return bool(value)
    if kind == "custom":
        if not spec.function:
            return value
        fn = registry.get(spec.function)
        if fn is None:
            raise TransformConfigError(f"Unknown transform plugin: {spec.function}")
        return fn(value)
    return value


def apply_transformations(
    value: Any,
    specs: Iterable[TransformSpec] | None,
    registry: TransformRegistry | None = None,
) -> Any:
    """
    Run value through specs in order; each step receives the previous output.
    A failing step is logged at debug level and the value passes through unchanged.
    """
    registry = registry or default_registry
    for spec in specs or ():
        try:
            value = _apply_one(value, spec, registry)
        except TransformConfigError:
            raise
        except Exception as e:
            logger.debug("Transform %s failed on %r: %s", spec.type, value, e)
    return value


def validate_transformations(
    specs: Iterable[TransformSpec],
    registry: TransformRegistry | None = None,
) -> None:
    """Resolve custom plugin names up front so a sync fails before fetching anything."""
    registry = registry or default_registry
    for spec in specs:
        if spec.type == "custom" and spec.function and spec.function not in registry:
            raise TransformConfigError(
                f"Unknown transform plugin '{spec.function}'. Available: {', '.join(registry.names())}"
            )
