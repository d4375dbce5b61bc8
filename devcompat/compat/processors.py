"""Rule processor protocol and built-in processors.

A rule processor evaluates one cross-field ``CompatibilityRule`` against a ``ComparisonContext``.
``rule.source_field`` is read from the source device's specifications, ``rule.target_field`` from
the target device's.
"""

import json
import math
import re
from typing import Any, Protocol

from devcompat.compat.parsers import (
    connector_family,
    normalize_connector,
    parse_connectors,
    parse_dimensions,
    parse_power,
    parse_resolution,
)
from devcompat.config import Settings, get_settings
from devcompat.exceptions import RuleProcessorError
from devcompat.schemas.models import (
    Compatibility,
    CompatibilityRule,
    ComparisonContext,
    RuleCompatibilityResult,
)


class RuleProcessor(Protocol):
    """Protocol for rule processors (built-in and caller-registered)."""

    def process(self, rule: CompatibilityRule, context: ComparisonContext) -> RuleCompatibilityResult:
        """Evaluate ``rule`` for the two devices in ``context``."""
        ...


# ---------------------------------------------------------------------------
# Default: restricted comparison expressions ("source <= target")
# ---------------------------------------------------------------------------

_CONDITION_PATTERN = re.compile(r"^\s*(?P<lhs>.+?)\s+(?P<op><=|>=|==|!=|<|>|not\s+in|in)\s+(?P<rhs>.+?)\s*$")

_OPERATORS = {
    "<=": lambda a, b: a <= b,
    ">=": lambda a, b: a >= b,
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    ">": lambda a, b: a > b,
    "in": lambda a, b: a in b,
    "not in": lambda a, b: a not in b,
}


class DefaultRuleProcessor:
    """Evaluates ``rule.condition`` as ``LHS op RHS`` over ``source``, ``target`` and JSON literals.

    Used for rules whose name has no dedicated processor. No code is executed: anything that is not
    a single comparison raises ``RuleProcessorError``.
    """

    confidence = 0.8

    def process(self, rule: CompatibilityRule, context: ComparisonContext) -> RuleCompatibilityResult:
        source = context.source_value(rule)
        target = context.target_value(rule)
        holds = self.evaluate(rule.condition, source, target)
        if holds:
            return RuleCompatibilityResult(
                compatible=rule.compatibility_type,
                confidence=self.confidence,
                limitations=[],
                recommendations=[],
            )
        limitations = list(rule.limitations) or [
            f"{rule.description or rule.name}: condition '{rule.condition}' not met "
            f"({rule.source_field}={source!r}, {rule.target_field}={target!r})"
        ]
        return RuleCompatibilityResult(
            compatible=Compatibility.NONE,
            confidence=self.confidence,
            limitations=limitations,
            recommendations=list(rule.recommendations),
        )

    @staticmethod
    def evaluate(condition: str, source: Any, target: Any) -> bool:
        match = _CONDITION_PATTERN.match(condition or "")
        if not match:
            raise RuleProcessorError(f"Unsupported rule condition: {condition!r}")
        op = " ".join(match.group("op").split())
        lhs = _operand(match.group("lhs"), source, target)
        rhs = _operand(match.group("rhs"), source, target)
        try:
            return bool(_OPERATORS[op](lhs, rhs))
        except TypeError as e:
            raise RuleProcessorError(f"Cannot evaluate {condition!r} for {source!r}, {target!r}: {e}") from e


def _operand(token: str, source: Any, target: Any) -> Any:
    token = token.strip()
    if token == "source":
        return source
    if token == "target":
        return target
    try:
        return json.loads(token)
    except json.JSONDecodeError as e:
        raise RuleProcessorError(f"Unknown operand in rule condition: {token!r}") from e


# ---------------------------------------------------------------------------
# Power: source requires, target supplies
# ---------------------------------------------------------------------------


class PowerCompatibilityProcessor:
    """Full when the target supplies at least what the source requires, otherwise none."""

    def __init__(self, headroom: float | None = None, settings: Settings | None = None):
        if headroom is None:
            headroom = (settings or get_settings()).power_headroom
        self.headroom = headroom

    def process(self, rule: CompatibilityRule, context: ComparisonContext) -> RuleCompatibilityResult:
        required = parse_power(context.source_value(rule))
        supplied = parse_power(context.target_value(rule))
        if required is None or supplied is None:
            return RuleCompatibilityResult(
                compatible=Compatibility.NONE,
                confidence=0.0,
                limitations=["Power values must be numeric"],
                recommendations=[],
            )

        if required <= supplied:
            return RuleCompatibilityResult(
                compatible=Compatibility.FULL,
                confidence=0.95,
                limitations=[],
                recommendations=[],
            )

        shortfall = (required - supplied) / required if required > 0 else 1.0
        return RuleCompatibilityResult(
            compatible=Compatibility.NONE,
            confidence=round(min(1.0, 0.6 + 0.4 * shortfall), 4),
            limitations=[
                f"Insufficient power: target supplies {_watts(supplied)} but source requires "
                f"{_watts(required)} ({shortfall:.0%} short)"
            ],
            recommendations=[
                f"Use a power supply with at least {math.ceil(round(required * self.headroom, 6))}W capacity"
            ],
        )


def _watts(value: float) -> str:
    return f"{int(value)}W" if float(value).is_integer() else f"{value:g}W"


# ---------------------------------------------------------------------------
# Dimensions: source must fit within target on every axis
# ---------------------------------------------------------------------------

_AXIS_NAMES = ("width", "height", "depth")


class DimensionCompatibilityProcessor:
    def process(self, rule: CompatibilityRule, context: ComparisonContext) -> RuleCompatibilityResult:
        source = parse_dimensions(context.source_value(rule))
        target = parse_dimensions(context.target_value(rule))
        if source is None or target is None or len(source) != len(target):
            return RuleCompatibilityResult(
                compatible=Compatibility.NONE,
                confidence=0.0,
                limitations=[
                    f"Dimensions of {rule.source_field} and {rule.target_field} cannot be compared"
                ],
                recommendations=[],
            )

        limitations: list[str] = []
        for i, (needed, available) in enumerate(zip(source, target)):
            if needed > available:
                axis = _AXIS_NAMES[i] if len(source) > 1 and i < len(_AXIS_NAMES) else "size"
                limitations.append(f"{axis.capitalize()} {needed:g} exceeds available {available:g}")
        if not limitations:
            return RuleCompatibilityResult(compatible=Compatibility.FULL, confidence=0.9)
        return RuleCompatibilityResult(
            compatible=Compatibility.NONE,
            confidence=0.9,
            limitations=limitations,
            recommendations=[f"Choose a target with larger {rule.target_field}"],
        )


# ---------------------------------------------------------------------------
# Connectors: shared connector, same family (adapter), or nothing in common
# ---------------------------------------------------------------------------


class ConnectorCompatibilityProcessor:
    def process(self, rule: CompatibilityRule, context: ComparisonContext) -> RuleCompatibilityResult:
        source = parse_connectors(context.source_value(rule))
        target = parse_connectors(context.target_value(rule))
        if not source or not target:
            return RuleCompatibilityResult(
                compatible=Compatibility.NONE,
                confidence=0.0,
                limitations=["Connector values must be names or lists of names"],
                recommendations=[],
            )

        target_by_key = {normalize_connector(t): t for t in target}
        if any(normalize_connector(s) in target_by_key for s in source):
            return RuleCompatibilityResult(compatible=Compatibility.FULL, confidence=0.9)

        target_families = {connector_family(t): t for t in target}
        for s in source:
            t = target_families.get(connector_family(s))
            if t is not None:
                return RuleCompatibilityResult(
                    compatible=Compatibility.PARTIAL,
                    confidence=0.7,
                    limitations=[f"Connector {s} differs from {t}; same family, adapter required"],
                    recommendations=[f"Use a {s} to {t} adapter"],
                )

        return RuleCompatibilityResult(
            compatible=Compatibility.NONE,
            confidence=0.85,
            limitations=[f"No matching connector: source has {', '.join(source)}, target has {', '.join(target)}"],
            recommendations=[f"Use a {source[0]} to {target[0]} adapter or cable if one exists"],
        )


# ---------------------------------------------------------------------------
# Resolution: source output vs target maximum
# ---------------------------------------------------------------------------


class ResolutionCompatibilityProcessor:
    def process(self, rule: CompatibilityRule, context: ComparisonContext) -> RuleCompatibilityResult:
        source = parse_resolution(context.source_value(rule))
        target = parse_resolution(context.target_value(rule))
        if source is None or target is None:
            return RuleCompatibilityResult(
                compatible=Compatibility.NONE,
                confidence=0.0,
                limitations=["Resolution values must look like WIDTHxHEIGHT"],
                recommendations=[],
            )
        if target[0] >= source[0] and target[1] >= source[1]:
            return RuleCompatibilityResult(compatible=Compatibility.FULL, confidence=0.9)
        return RuleCompatibilityResult(
            compatible=Compatibility.PARTIAL,
            confidence=0.75,
            limitations=[
                f"Output {source[0]}x{source[1]} exceeds supported {target[0]}x{target[1]}; "
                "content will be downscaled"
            ],
            recommendations=[f"Set the source output to {target[0]}x{target[1]} or lower"],
        )


def builtin_processors(settings: Settings | None = None) -> dict[str, RuleProcessor]:
    """Fresh instances of the built-in processors keyed by rule name, configured from ``settings``."""
    return {
        "default": DefaultRuleProcessor(),
        "power_compatibility": PowerCompatibilityProcessor(settings=settings),
        "dimension_compatibility": DimensionCompatibilityProcessor(),
        "connector_compatibility": ConnectorCompatibilityProcessor(),
        "resolution_compatibility": ResolutionCompatibilityProcessor(),
    }
