"""Pydantic models and tagged specification values: single source of truth for all data shapes."""

from devcompat.schemas.models import (
    CategorySchema,
    Compatibility,
    CompatibilityResult,
    CompatibilityRule,
    ComparisonContext,
    DeviceSpecificationContext,
    FieldCompatibilityResult,
    FieldConstraints,
    FieldDefinition,
    FieldMetadata,
    FieldType,
    Importance,
    RuleCompatibilityResult,
    worst_compatibility,
)
from devcompat.schemas.values import (
    ArrayValue,
    BoolValue,
    EnumValue,
    NumberValue,
    ObjectValue,
    SpecValue,
    StringValue,
    coerce_value,
    infer_field_type,
)

__all__ = [
    "ArrayValue",
    "BoolValue",
    "CategorySchema",
    "Compatibility",
    "CompatibilityResult",
    "CompatibilityRule",
    "ComparisonContext",
    "DeviceSpecificationContext",
    "EnumValue",
    "FieldCompatibilityResult",
    "FieldConstraints",
    "FieldDefinition",
    "FieldMetadata",
    "FieldType",
    "Importance",
    "NumberValue",
    "ObjectValue",
    "RuleCompatibilityResult",
    "SpecValue",
    "StringValue",
    "coerce_value",
    "infer_field_type",
    "worst_compatibility",
]
