"""Pydantic models for category schemas, device specifications, rules and compatibility results."""

from collections.abc import Iterable
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from devcompat.exceptions import CompatibilityInputError


class _Model(BaseModel):
    """Accepts snake_case names and the camelCase keys used by stored payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


_M = TypeVar("_M", bound=BaseModel)


class FieldType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    ARRAY = "array"
    OBJECT = "object"


class Compatibility(str, Enum):
    """Compatibility verdict, ordered best to worst: full > partial > none."""

    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"

    @property
    def rank(self) -> int:
        return _RANK[self]

    @property
    def score(self) -> float:
        """Score used in confidence aggregation: full 1.0, partial 0.5, none 0.0."""
        return _SCORE[self]


_RANK = {Compatibility.NONE: 0, Compatibility.PARTIAL: 1, Compatibility.FULL: 2}
_SCORE = {Compatibility.NONE: 0.0, Compatibility.PARTIAL: 0.5, Compatibility.FULL: 1.0}


def worst_compatibility(levels: Iterable[Compatibility]) -> Compatibility:
    """Most restrictive verdict among ``levels``; ``FULL`` for an empty iterable."""
    worst = Compatibility.FULL
    for level in levels:
        if level.rank < worst.rank:
            worst = level
            if worst is Compatibility.NONE:
                break
    return worst


class Importance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FieldConstraints(_Model):
    """Type-specific constraints. ``enum`` order defines adjacency for partial matches."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    required: bool = False
    min: float | None = None
    max: float | None = None
    enum: list[str] | None = None
    format: str | None = None  # "identifier" makes a string field exact-match only
    unit: str | None = None


class FieldMetadata(_Model):
    label: str = ""
    description: str | None = None
    importance: Importance = Importance.MEDIUM
    weight: float | None = Field(default=None, ge=0.0, le=1.0)  # compatibility scoring weight


class FieldDefinition(_Model):
    """Contract for one specification field."""

    type: FieldType
    constraints: FieldConstraints = FieldConstraints()
    metadata: FieldMetadata = FieldMetadata()

    @model_validator(mode="after")
    def _enum_needs_values(self) -> "FieldDefinition":
        if self.type == FieldType.ENUM and not self.constraints.enum:
            raise ValueError("enum fields require a non-empty 'enum' constraint list")
        return self

    @property
    def enum_values(self) -> list[str]:
        return list(self.constraints.enum or [])

    @property
    def is_identifier(self) -> bool:
        return self.type == FieldType.STRING and (self.constraints.format or "").lower() == "identifier"


class CompatibilityRule(_Model):
    """A named cross-field check; ``name`` selects the rule processor."""

    id: str
    name: str
    description: str = ""
    source_field: str
    target_field: str
    condition: str = ""  # e.g. "source <= target"
    compatibility_type: Compatibility = Compatibility.FULL
    message: str = ""
    limitations: list[str] = []
    recommendations: list[str] = []
    weight: float | None = Field(default=None, ge=0.0)


class CategorySchema(_Model):
    """Versioned specification shape of a device category. Read-only to the engine."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str  # category identifier
    name: str = ""
    version: str
    description: str | None = None
    fields: dict[str, FieldDefinition] = {}
    compatibility_rules: list[CompatibilityRule] = []

    @model_validator(mode="before")
    @classmethod
    def _fields_from_list(cls, data: Any) -> Any:
        """Accept ``fields`` as a list of ``{name: ..., type: ...}`` entries; names must be unique."""
        if not isinstance(data, dict) or not isinstance(data.get("fields"), list):
            return data
        fields: dict[str, Any] = {}
        for entry in data["fields"]:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise ValueError("field entries in list form need a 'name'")
            entry = dict(entry)
            name = entry.pop("name")
            if name in fields:
                raise ValueError(f"duplicate field name '{name}' in schema")
            fields[name] = entry
        return {**data, "fields": fields}

    def field(self, name: str) -> FieldDefinition | None:
        return self.fields.get(name)


class DeviceSpecificationContext(_Model):
    """One device's specification payload, paired with its schema by (category_id, schema_version)."""

    device_id: str
    category_id: str
    schema_version: str | None = None
    specifications: dict[str, Any] = {}
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def has_field(self, name: str) -> bool:
        """True when the key is present, even with a null value."""
        return name in self.specifications

    def display_name(self, keys: Iterable[str] = ("name",)) -> str:
        for key in keys:
            value = self.specifications.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return self.device_id


class ComparisonContext(_Model):
    """Everything a rule processor may read for one comparison."""

    source_device: DeviceSpecificationContext
    target_device: DeviceSpecificationContext
    source_schema: CategorySchema | None = None
    target_schema: CategorySchema | None = None
    connection_type: str | None = None
    use_case: str | None = None

    def source_value(self, rule: CompatibilityRule) -> Any:
        return self.source_device.specifications.get(rule.source_field)

    def target_value(self, rule: CompatibilityRule) -> Any:
        return self.target_device.specifications.get(rule.target_field)


class FieldCompatibilityResult(_Model):
    compatible: Compatibility
    weight: float = 1.0
    message: str = ""
    source_value: Any = None
    target_value: Any = None


class RuleCompatibilityResult(_Model):
    compatible: Compatibility
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    limitations: list[str] = []
    recommendations: list[str] = []


class CompatibilityResult(_Model):
    """Final verdict for one comparison. Constructed once, never mutated."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    compatible: Compatibility
    confidence: float = Field(ge=0.0, le=1.0)
    details: str = ""
    limitations: list[str] = []
    recommendations: list[str] = []
    matched_rules: list[str] = []
    field_compatibility: dict[str, FieldCompatibilityResult] = {}
    rule_results: dict[str, RuleCompatibilityResult] = {}
    skipped_rules: list[str] = []


def validate_payload(model: type[_M], data: Any, what: str) -> _M:
    """Validate a caller payload into ``model``; malformed input raises ``CompatibilityInputError``."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise CompatibilityInputError(f"Malformed {what}: {e}") from e
