"""Field comparator: type-dispatched comparison of one specification field's two values.

Thresholds (defaults, tunable via Settings):

* number: relative difference ``|a-b| / max(|a|, |b|, eps)``: <=5% full, <=20% partial, else none.
* array: Jaccard overlap ``|A & B| / |A | B|``: >=0.8 full, >0 partial, 0 none.
* enum: equal full, positions 1 apart in the declared ordering partial, else none.
* string: case-insensitive equality full, containment partial, else none.
* boolean / identifier strings: exact match only.

Declared types that disagree between the two sides are always ``none``.
"""

import json
import logging
from typing import Any, Callable

from devcompat.config import Settings, get_settings
from devcompat.schemas.models import (
    Compatibility,
    FieldCompatibilityResult,
    FieldDefinition,
    FieldType,
    worst_compatibility,
)
from devcompat.schemas.values import SpecValue, coerce_value, infer_field_type

logger = logging.getLogger(__name__)


def _fmt(value: Any, max_items: int = 5) -> str:
    """Display form of a value; long arrays and objects are summarised."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        if len(items) > max_items:
            return f"[{len(items)} items]"
        return "[" + ", ".join(_fmt(i, max_items) for i in items) + "]"
    if isinstance(value, dict):
        if len(value) > max_items:
            return f"{{{len(value)} keys}}"
        return "{" + ", ".join(f"{k}: {_fmt(v, max_items)}" for k, v in value.items()) + "}"
    if isinstance(value, str):
        return repr(value)
    return str(value)


def _result(
    level: Compatibility,
    weight: float,
    message: str,
    source_value: Any,
    target_value: Any,
) -> FieldCompatibilityResult:
    return FieldCompatibilityResult(
        compatible=level,
        weight=weight,
        message=message,
        source_value=source_value,
        target_value=target_value,
    )


def _item_key(item: Any) -> Any:
    """Hashable identity for an array element. Booleans never equal numbers; 1 and 1.0 match."""
    if isinstance(item, bool):
        return ("bool", item)
    if isinstance(item, (int, float)):
        return ("number", item)
    try:
        hash(item)
        return (type(item).__name__, item)
    except TypeError:
        return (type(item).__name__, json.dumps(item, sort_keys=True, default=str))


def compare_numeric(
    field_name: str,
    source_value: Any,
    target_value: Any,
    weight: float = 1.0,
    settings: Settings | None = None,
) -> FieldCompatibilityResult:
    """Compare two numbers by relative difference."""
    settings = settings or get_settings()
    if isinstance(source_value, bool) or isinstance(target_value, bool) or not (
        isinstance(source_value, (int, float)) and isinstance(target_value, (int, float))
    ):
        return _result(
            Compatibility.NONE,
            weight,
            f"{field_name} values cannot be compared as numbers "
            f"({_fmt(source_value)} vs {_fmt(target_value)})",
            source_value,
            target_value,
        )

    a, b = float(source_value), float(target_value)
    # 12 places: 0.95 vs 1.0 is exactly 5%
    relative = round(abs(a - b) / max(abs(a), abs(b), settings.numeric_epsilon), 12)
    shown = f"({_fmt(a)} vs {_fmt(b)}, {relative:.1%} difference)"
    if relative <= settings.numeric_full_tolerance:
        return _result(
            Compatibility.FULL,
            weight,
            f"{field_name} values are within acceptable tolerance {shown}",
            source_value,
            target_value,
        )
    if relative <= settings.numeric_partial_tolerance:
        return _result(
            Compatibility.PARTIAL,
            weight,
            f"{field_name} values have minor difference {shown}",
            source_value,
            target_value,
        )
    return _result(
        Compatibility.NONE,
        weight,
        f"{field_name} values differ significantly {shown}",
        source_value,
        target_value,
    )


def compare_string(
    field_name: str,
    source_value: str,
    target_value: str,
    weight: float = 1.0,
    settings: Settings | None = None,
) -> FieldCompatibilityResult:
    """Case-insensitive match is full, containment either way is partial."""
    shown = f"({_fmt(source_value)} vs {_fmt(target_value)})"
    if source_value == target_value:
        return _result(
            Compatibility.FULL, weight, f"{field_name} values match exactly {shown}", source_value, target_value
        )
    a, b = source_value.strip().casefold(), target_value.strip().casefold()
    if a == b:
        return _result(
            Compatibility.FULL,
            weight,
            f"{field_name} values match (case-insensitive) {shown}",
            source_value,
            target_value,
        )
    if a and b and (a in b or b in a):
        return _result(
            Compatibility.PARTIAL,
            weight,
            f"{field_name} values partially match {shown}",
            source_value,
            target_value,
        )
    return _result(
        Compatibility.NONE, weight, f"{field_name} values do not match {shown}", source_value, target_value
    )


def compare_exact(
    field_name: str,
    source_value: Any,
    target_value: Any,
    weight: float = 1.0,
    settings: Settings | None = None,
) -> FieldCompatibilityResult:
    """Booleans and identifier strings: equal or not."""
    shown = f"({_fmt(source_value)} vs {_fmt(target_value)})"
    if source_value == target_value:
        return _result(
            Compatibility.FULL, weight, f"{field_name} values match exactly {shown}", source_value, target_value
        )
    return _result(
        Compatibility.NONE, weight, f"{field_name} values do not match {shown}", source_value, target_value
    )


def compare_enum(
    field_name: str,
    source_value: str,
    target_value: str,
    enum_values: list[str],
    weight: float = 1.0,
    settings: Settings | None = None,
) -> FieldCompatibilityResult:
    """Adjacent positions in the declared enum ordering are a partial match."""
    settings = settings or get_settings()
    shown = f"({_fmt(source_value)} vs {_fmt(target_value)})"
    if source_value == target_value:
        return _result(
            Compatibility.FULL, weight, f"{field_name} values match exactly {shown}", source_value, target_value
        )
    if source_value not in enum_values or target_value not in enum_values:
        return _result(
            Compatibility.NONE,
            weight,
            f"{field_name} enum values are incompatible {shown}: value not declared in enum",
            source_value,
            target_value,
        )
    distance = abs(enum_values.index(source_value) - enum_values.index(target_value))
    if distance <= settings.enum_partial_distance:
        return _result(
            Compatibility.PARTIAL,
            weight,
            f"{field_name} values are adjacent in enum {shown}",
            source_value,
            target_value,
        )
    return _result(
        Compatibility.NONE,
        weight,
        f"{field_name} enum values are incompatible {shown}: {distance} positions apart",
        source_value,
        target_value,
    )


def compare_array(
    field_name: str,
    source_value: list[Any],
    target_value: list[Any],
    weight: float = 1.0,
    settings: Settings | None = None,
) -> FieldCompatibilityResult:
    """Jaccard overlap of the two value sets."""
    settings = settings or get_settings()
    n = settings.summary_max_items
    shown = f"({_fmt(list(source_value), n)} vs {_fmt(list(target_value), n)})"
    source_keys = {_item_key(i) for i in source_value}
    target_keys = {_item_key(i) for i in target_value}
    union = source_keys | target_keys
    if not union:
        return _result(
            Compatibility.FULL, weight, f"{field_name} arrays are both empty", source_value, target_value
        )
    overlap = len(source_keys & target_keys) / len(union)
    if overlap >= settings.array_full_overlap:
        return _result(
            Compatibility.FULL,
            weight,
            f"{field_name} arrays have high overlap ({overlap:.0%}) {shown}",
            source_value,
            target_value,
        )
    if overlap > 0:
        return _result(
            Compatibility.PARTIAL,
            weight,
            f"{field_name} arrays have partial overlap ({overlap:.0%}) {shown}",
            source_value,
            target_value,
        )
    return _result(
        Compatibility.NONE,
        weight,
        f"{field_name} arrays have no overlap {shown}",
        source_value,
        target_value,
    )


def compare_object(
    field_name: str,
    source_value: dict[str, Any],
    target_value: dict[str, Any],
    weight: float = 1.0,
    settings: Settings | None = None,
) -> FieldCompatibilityResult:
    """Compare shared sub-keys one level deep; nested objects compare by equality."""
    settings = settings or get_settings()
    shared = [
        k for k in source_value if k in target_value and source_value[k] is not None and target_value[k] is not None
    ]
    if not shared:
        return _result(
            Compatibility.NONE,
            weight,
            f"{field_name} objects share no comparable keys",
            source_value,
            target_value,
        )

    sub_results: dict[str, FieldCompatibilityResult] = {}
    for key in shared:
        sub_name = f"{field_name}.{key}"
        a, b = source_value[key], target_value[key]
        a_type, b_type = infer_field_type(a), infer_field_type(b)
        if a_type is None or a_type != b_type:
            sub_results[key] = _type_mismatch(sub_name, a, b, a_type, b_type, weight)
        elif a_type == FieldType.OBJECT:
            sub_results[key] = compare_exact(sub_name, a, b, weight, settings)
        elif a_type == FieldType.NUMBER:
            sub_results[key] = compare_numeric(sub_name, a, b, weight, settings)
        elif a_type == FieldType.STRING:
            sub_results[key] = compare_string(sub_name, a, b, weight, settings)
        elif a_type == FieldType.ARRAY:
            sub_results[key] = compare_array(sub_name, list(a), list(b), weight, settings)
        else:
            sub_results[key] = compare_exact(sub_name, a, b, weight, settings)

    level = worst_compatibility(r.compatible for r in sub_results.values())
    issues = [r.message for r in sub_results.values() if r.compatible != Compatibility.FULL]
    message = f"{field_name} objects: {len(shared)} shared key(s) compared, {level.value}"
    if issues:
        message += ": " + "; ".join(issues)
    return _result(level, weight, message, source_value, target_value)


def _type_mismatch(
    field_name: str,
    source_value: Any,
    target_value: Any,
    source_type: FieldType | None,
    target_type: FieldType | None,
    weight: float,
) -> FieldCompatibilityResult:
    a = source_type.value if source_type else type(source_value).__name__
    b = target_type.value if target_type else type(target_value).__name__
    return _result(
        Compatibility.NONE,
        weight,
        f"{field_name} type mismatch: {a} vs {b} ({_fmt(source_value)} vs {_fmt(target_value)})",
        source_value,
        target_value,
    )


# --- Dispatch by declared field type -------------------------------------------------------

_Comparator = Callable[[str, SpecValue, SpecValue, FieldDefinition, FieldDefinition, float, Settings], FieldCompatibilityResult]


def _dispatch_string(name, sv, tv, source_def, target_def, weight, settings):
    if source_def.is_identifier or target_def.is_identifier:
        return compare_exact(name, sv.value, tv.value, weight, settings)
    return compare_string(name, sv.value, tv.value, weight, settings)


def _dispatch_number(name, sv, tv, source_def, target_def, weight, settings):
    return compare_numeric(name, sv.value, tv.value, weight, settings)


def _dispatch_boolean(name, sv, tv, source_def, target_def, weight, settings):
    return compare_exact(name, sv.value, tv.value, weight, settings)


def _dispatch_enum(name, sv, tv, source_def, target_def, weight, settings):
    ordering = source_def.enum_values
    if sv.value not in ordering or tv.value not in ordering:
        ordering = target_def.enum_values or ordering
    return compare_enum(name, sv.value, tv.value, ordering, weight, settings)


def _dispatch_array(name, sv, tv, source_def, target_def, weight, settings):
    return compare_array(name, list(sv.items), list(tv.items), weight, settings)


def _dispatch_object(name, sv, tv, source_def, target_def, weight, settings):
    return compare_object(name, sv.entries, tv.entries, weight, settings)


_COMPARATORS: dict[FieldType, _Comparator] = {
    FieldType.STRING: _dispatch_string,
    FieldType.NUMBER: _dispatch_number,
    FieldType.BOOLEAN: _dispatch_boolean,
    FieldType.ENUM: _dispatch_enum,
    FieldType.ARRAY: _dispatch_array,
    FieldType.OBJECT: _dispatch_object,
}


def field_weight(
    source_def: FieldDefinition | None,
    target_def: FieldDefinition | None,
    settings: Settings | None = None,
) -> float:
    """Scoring weight: source definition first, then target, then the configured default."""
    for definition in (source_def, target_def):
        if definition is not None and definition.metadata.weight is not None:
            return definition.metadata.weight
    return (settings or get_settings()).default_field_weight


def compare_field(
    field_name: str,
    source_value: Any,
    target_value: Any,
    source_def: FieldDefinition | None = None,
    target_def: FieldDefinition | None = None,
    weight: float | None = None,
    settings: Settings | None = None,
) -> FieldCompatibilityResult:
    """Compare one field's two values according to its declared definitions.

    A definition missing on one side is taken from the other; with neither, the field type is
    inferred from the values themselves.
    """
    settings = settings or get_settings()
    source_def = source_def or target_def
    target_def = target_def or source_def
    if weight is None:
        weight = field_weight(source_def, target_def, settings)

    if source_def is None or target_def is None:
        source_type, target_type = infer_field_type(source_value), infer_field_type(target_value)
        if source_type is None or source_type != target_type:
            return _type_mismatch(field_name, source_value, target_value, source_type, target_type, weight)
        logger.debug("No definition for field %s; inferred type %s", field_name, source_type.value)
        source_def = target_def = FieldDefinition.model_construct(type=source_type)

    if source_def.type != target_def.type:
        return _type_mismatch(field_name, source_value, target_value, source_def.type, target_def.type, weight)

    field_type = source_def.type
    sv, tv = coerce_value(source_value, field_type), coerce_value(target_value, field_type)
    if sv is None or tv is None:
        bad = source_value if sv is None else target_value
        return _result(
            Compatibility.NONE,
            weight,
            f"{field_name} value {_fmt(bad)} is not a valid {field_type.value}",
            source_value,
            target_value,
        )

    if sv == tv:
        return _result(
            Compatibility.FULL,
            weight,
            f"{field_name} values match exactly ({_fmt(source_value)})",
            source_value,
            target_value,
        )
    return _COMPARATORS[field_type](field_name, sv, tv, source_def, target_def, weight, settings)
