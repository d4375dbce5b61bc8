"""Compatibility engine: field comparator, rule processors and the aggregating engine."""

from devcompat.compat.comparator import (
    compare_array,
    compare_enum,
    compare_exact,
    compare_field,
    compare_numeric,
    compare_object,
    compare_string,
)
from devcompat.compat.engine import CompatibilityEngine, generate_details
from devcompat.compat.processors import (
    ConnectorCompatibilityProcessor,
    DefaultRuleProcessor,
    DimensionCompatibilityProcessor,
    PowerCompatibilityProcessor,
    ResolutionCompatibilityProcessor,
    RuleProcessor,
)
from devcompat.compat.rule_registry import RuleProcessorRegistry

__all__ = [
    "CompatibilityEngine",
    "ConnectorCompatibilityProcessor",
    "DefaultRuleProcessor",
    "DimensionCompatibilityProcessor",
    "PowerCompatibilityProcessor",
    "ResolutionCompatibilityProcessor",
    "RuleProcessor",
    "RuleProcessorRegistry",
    "compare_array",
    "compare_enum",
    "compare_exact",
    "compare_field",
    "compare_numeric",
    "compare_object",
    "compare_string",
    "generate_details",
]
