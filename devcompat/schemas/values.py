"""Tagged specification values.

Raw specification payloads are arbitrary JSON-like values. Before comparison each raw value is
coerced into exactly one tagged variant according to its declared ``FieldType``; a value that does
not fit its declared type coerces to ``None`` and the comparator reports it instead of guessing.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Union

from devcompat.schemas.models import FieldType


@dataclass(frozen=True)
class StringValue:
    kind: ClassVar[FieldType] = FieldType.STRING
    value: str


@dataclass(frozen=True)
class NumberValue:
    kind: ClassVar[FieldType] = FieldType.NUMBER
    value: float


@dataclass(frozen=True)
class BoolValue:
    kind: ClassVar[FieldType] = FieldType.BOOLEAN
    value: bool


@dataclass(frozen=True)
class EnumValue:
    kind: ClassVar[FieldType] = FieldType.ENUM
    value: str


@dataclass(frozen=True)
class ArrayValue:
    kind: ClassVar[FieldType] = FieldType.ARRAY
    items: tuple[Any, ...]


@dataclass(frozen=True)
class ObjectValue:
    kind: ClassVar[FieldType] = FieldType.OBJECT
    entries: dict[str, Any]


SpecValue = Union[StringValue, NumberValue, BoolValue, EnumValue, ArrayValue, ObjectValue]


def infer_field_type(raw: Any) -> FieldType | None:
    """Field type implied by a raw Python value (used when no schema declares the field)."""
    if isinstance(raw, bool):
        return FieldType.BOOLEAN
    if isinstance(raw, (int, float)):
        return FieldType.NUMBER
    if isinstance(raw, str):
        return FieldType.STRING
    if isinstance(raw, (list, tuple, set, frozenset)):
        return FieldType.ARRAY
    if isinstance(raw, dict):
        return FieldType.OBJECT
    return None


def coerce_value(raw: Any, field_type: FieldType) -> SpecValue | None:
    """Coerce ``raw`` into the variant for ``field_type``; ``None`` if it does not fit."""
    if raw is None:
        return None
    if field_type == FieldType.BOOLEAN:
        return BoolValue(raw) if isinstance(raw, bool) else None
    if field_type == FieldType.NUMBER:
        if isinstance(raw, bool):
            return None
        if isinstance(raw, (int, float)):
            return NumberValue(float(raw))
        if isinstance(raw, str):
            try:
                return NumberValue(float(raw.strip()))
            except ValueError:
                return None
        return None
    if field_type == FieldType.STRING:
        if isinstance(raw, str):
            return StringValue(raw)
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return StringValue(str(raw))
        return None
    if field_type == FieldType.ENUM:
        return EnumValue(raw) if isinstance(raw, str) else None
    if field_type == FieldType.ARRAY:
        if isinstance(raw, (list, tuple, set, frozenset)):
            return ArrayValue(tuple(raw))
        return None
    if field_type == FieldType.OBJECT:
        return ObjectValue(dict(raw)) if isinstance(raw, dict) else None
    return None
