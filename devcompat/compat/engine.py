"""Compatibility engine: field comparison + rule processors -> one CompatibilityResult.

The engine never fails on missing optional data. A schema that cannot be resolved, a field present
on only one side, or a rule whose fields are absent is skipped. Only payloads that cannot be
interpreted at all (specifications that are not a mapping, rules missing required keys) raise
``CompatibilityInputError``. A processor that raises is isolated: its rule is reported in
``skipped_rules`` and the rest of the comparison completes.
"""

import asyncio
import inspect
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from devcompat.compat.comparator import compare_field
from devcompat.compat.processors import RuleProcessor
from devcompat.compat.rule_registry import RuleProcessorRegistry
from devcompat.config import Settings, get_settings
from devcompat.registry.schema_registry import SchemaRegistry
from devcompat.schemas.models import (
    CategorySchema,
    Compatibility,
    CompatibilityResult,
    CompatibilityRule,
    ComparisonContext,
    DeviceSpecificationContext,
    FieldCompatibilityResult,
    RuleCompatibilityResult,
    validate_payload,
    worst_compatibility,
)

logger = logging.getLogger(__name__)

DeviceInput = DeviceSpecificationContext | Mapping[str, Any]
RuleInput = CompatibilityRule | Mapping[str, Any]


def _dedupe(items: Iterable[str]) -> list[str]:
    """Drop repeats, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def generate_details(
    compatible: Compatibility,
    confidence: float,
    limitations: list[str],
    recommendations: list[str],
    source_name: str,
    target_name: str,
    evaluated: bool = True,
) -> str:
    """Human-readable narrative for a comparison."""
    lines = [
        "Compatibility between devices:",
        f"Source: {source_name}",
        f"Target: {target_name}",
        f"Overall: {compatible.value.upper()} ({int(confidence * 100 + 0.5)}% confidence)",
    ]
    if not evaluated:
        lines.append("No comparable fields or applicable rules were found.")
    if limitations:
        lines.append("")
        lines.append("Limitations:")
        lines.extend(f"- {item}" for item in limitations)
    if recommendations:
        lines.append("")
        lines.append("Recommendations:")
        lines.extend(f"- {item}" for item in recommendations)
    return "\n".join(lines)


class CompatibilityEngine:
    """Decides whether two devices interoperate, at what confidence, and with what caveats."""

    def __init__(
        self,
        schema_registry: SchemaRegistry | None = None,
        settings: Settings | None = None,
        rules: Iterable[RuleInput] = (),
        processors: RuleProcessorRegistry | None = None,
    ) -> None:
        self.schema_registry = schema_registry
        self.settings = settings or get_settings()
        if processors is None:
            processors = RuleProcessorRegistry(settings=self.settings)
        self.rule_processors = processors
        self._rules: list[CompatibilityRule] = []
        for rule in rules:
            self.add_rule(rule)

    # -- setup --------------------------------------------------------------------------

    def register_rule_processor(self, name: str, processor: RuleProcessor) -> None:
        """Add or replace the processor for rules named ``name``. Call during setup."""
        self.rule_processors.register(name, processor)

    def add_rule(self, rule: RuleInput) -> CompatibilityRule:
        """Pre-register a rule evaluated on every comparison where it applies."""
        rule = validate_payload(CompatibilityRule, rule, "compatibility rule")
        self._rules.append(rule)
        return rule

    @property
    def rules(self) -> list[CompatibilityRule]:
        return list(self._rules)

    # -- entry points -------------------------------------------------------------------

    def compare(
        self,
        source_device: DeviceInput,
        target_device: DeviceInput,
        rules: Iterable[RuleInput] | None = None,
        connection_type: str | None = None,
        use_case: str | None = None,
    ) -> CompatibilityResult:
        """Compare two device specifications; schemas come from the configured registry."""
        source = validate_payload(DeviceSpecificationContext, source_device, "source device specification")
        target = validate_payload(DeviceSpecificationContext, target_device, "target device specification")
        extra_rules = self._validate_rules(rules)
        context = ComparisonContext(
            source_device=source,
            target_device=target,
            source_schema=self._lookup_schema(source),
            target_schema=self._lookup_schema(target),
            connection_type=connection_type,
            use_case=use_case,
        )
        return self.evaluate(context, extra_rules)

    async def acompare(
        self,
        source_device: DeviceInput,
        target_device: DeviceInput,
        rules: Iterable[RuleInput] | None = None,
        connection_type: str | None = None,
        use_case: str | None = None,
    ) -> CompatibilityResult:
        """Like ``compare`` but awaits asynchronous schema lookups, each bounded by
        ``schema_lookup_timeout``. The comparison itself is synchronous."""
        source = validate_payload(DeviceSpecificationContext, source_device, "source device specification")
        target = validate_payload(DeviceSpecificationContext, target_device, "target device specification")
        extra_rules = self._validate_rules(rules)
        source_schema, target_schema = await asyncio.gather(
            self._alookup_schema(source),
            self._alookup_schema(target),
        )
        context = ComparisonContext(
            source_device=source,
            target_device=target,
            source_schema=source_schema,
            target_schema=target_schema,
            connection_type=connection_type,
            use_case=use_case,
        )
        return self.evaluate(context, extra_rules)

    # -- schema resolution --------------------------------------------------------------

    def _lookup_schema(self, device: DeviceSpecificationContext) -> CategorySchema | None:
        if self.schema_registry is None:
            return None
        try:
            schema = self.schema_registry.get_schema(device.category_id, device.schema_version)
        except Exception as e:
            logger.warning(
                "Schema lookup failed for %s v%s (%s); comparing without schema",
                device.category_id,
                device.schema_version,
                e,
            )
            return None
        if inspect.isawaitable(schema):
            if inspect.iscoroutine(schema):
                schema.close()
            logger.warning(
                "Schema registry returned an awaitable for %s; use acompare(). Comparing without schema",
                device.category_id,
            )
            return None
        return self._accept_schema(device, schema)

    async def _alookup_schema(self, device: DeviceSpecificationContext) -> CategorySchema | None:
        if self.schema_registry is None:
            return None
        try:
            schema = self.schema_registry.get_schema(device.category_id, device.schema_version)
            if inspect.isawaitable(schema):
                schema = await asyncio.wait_for(schema, timeout=self.settings.schema_lookup_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Schema lookup for %s v%s timed out after %.1fs; comparing without schema",
                device.category_id,
                device.schema_version,
                self.settings.schema_lookup_timeout,
            )
            return None
        except Exception as e:
            logger.warning(
                "Schema lookup failed for %s v%s (%s); comparing without schema",
                device.category_id,
                device.schema_version,
                e,
            )
            return None
        return self._accept_schema(device, schema)

    def _accept_schema(self, device: DeviceSpecificationContext, schema: Any) -> CategorySchema | None:
        if schema is None:
            logger.warning(
                "No schema for %s v%s; comparing fields present on the specification",
                device.category_id,
                device.schema_version or "latest",
            )
            return None
        if isinstance(schema, CategorySchema):
            return schema
        try:
            return validate_payload(CategorySchema, schema, "category schema")
        except ValueError as e:
            logger.warning("Unusable schema for %s: %s", device.category_id, e)
            return None

    # -- evaluation ---------------------------------------------------------------------

    def _validate_rules(self, rules: Iterable[RuleInput] | None) -> list[CompatibilityRule]:
        return [validate_payload(CompatibilityRule, r, "compatibility rule") for r in (rules or [])]

    def collect_rules(
        self,
        context: ComparisonContext,
        rules: Iterable[CompatibilityRule] = (),
    ) -> list[CompatibilityRule]:
        """Call-supplied rules, then engine rules, then source and target schema rules; first id wins."""
        candidates: list[CompatibilityRule] = list(rules) + self._rules
        for schema in (context.source_schema, context.target_schema):
            if schema is not None:
                candidates.extend(schema.compatibility_rules)
        seen: set[str] = set()
        ordered: list[CompatibilityRule] = []
        for rule in candidates:
            if rule.id not in seen:
                seen.add(rule.id)
                ordered.append(rule)
        return ordered

    @staticmethod
    def is_rule_applicable(rule: CompatibilityRule, context: ComparisonContext) -> bool:
        """A rule runs only if its source field is on the source device and its target field on the target."""
        return context.source_device.has_field(rule.source_field) and context.target_device.has_field(
            rule.target_field
        )

    def evaluate_rule(self, rule: CompatibilityRule, context: ComparisonContext) -> RuleCompatibilityResult | None:
        """Run the rule's processor; ``None`` when no processor exists or it failed."""
        processor = self.rule_processors.resolve(rule.name)
        if processor is None:
            logger.warning("No processor found for rule %s (%s)", rule.id, rule.name)
            return None
        try:
            result = processor.process(rule, context)
            if not isinstance(result, RuleCompatibilityResult):
                result = RuleCompatibilityResult.model_validate(result)
        except Exception as e:
            logger.warning("Error evaluating rule %s (%s): %s", rule.id, rule.name, e)
            return None
        return result

    def evaluate_fields(self, context: ComparisonContext) -> dict[str, FieldCompatibilityResult]:
        """Compare every field present on both specifications."""
        source_specs = context.source_device.specifications
        target_specs = context.target_device.specifications
        display_fields = set(self.settings.display_name_fields)
        results: dict[str, FieldCompatibilityResult] = {}

        for name in _dedupe(list(source_specs) + list(target_specs)):
            source_value, target_value = source_specs.get(name), target_specs.get(name)
            if source_value is None or target_value is None:
                logger.debug("Field %s present on one side only; skipped", name)
                continue
            source_def = context.source_schema.field(name) if context.source_schema else None
            target_def = context.target_schema.field(name) if context.target_schema else None
            if source_def is None and target_def is None and name in display_fields:
                continue
            results[name] = compare_field(
                name,
                source_value,
                target_value,
                source_def,
                target_def,
                settings=self.settings,
            )
        return results

    def evaluate(
        self,
        context: ComparisonContext,
        rules: Iterable[CompatibilityRule] = (),
    ) -> CompatibilityResult:
        """Run field comparison and applicable rules for a prepared context and aggregate."""
        field_results = self.evaluate_fields(context)

        rule_results: dict[str, RuleCompatibilityResult] = {}
        rule_weights: dict[str, float] = {}
        skipped: list[str] = []
        for rule in self.collect_rules(context, rules):
            if not self.is_rule_applicable(rule, context):
                logger.debug("Rule %s not applicable; skipped", rule.id)
                continue
            result = self.evaluate_rule(rule, context)
            if result is None:
                skipped.append(rule.id)
                continue
            rule_results[rule.id] = result
            rule_weights[rule.id] = rule.weight if rule.weight is not None else self.settings.default_rule_weight

        compatible = worst_compatibility(
            [f.compatible for f in field_results.values()] + [r.compatible for r in rule_results.values()]
        )

        weighted = sum(f.weight * f.compatible.score for f in field_results.values())
        weighted += sum(rule_weights[rid] * r.confidence for rid, r in rule_results.items())
        total = sum(f.weight for f in field_results.values()) + sum(rule_weights.values())
        confidence = round(weighted / total, 4) if total > 0 else 0.0

        limitations = _dedupe(item for r in rule_results.values() for item in r.limitations)
        recommendations = _dedupe(item for r in rule_results.values() for item in r.recommendations)

        names = self.settings.display_name_fields
        details = generate_details(
            compatible,
            confidence,
            limitations,
            recommendations,
            source_name=context.source_device.display_name(names),
            target_name=context.target_device.display_name(names),
            evaluated=bool(field_results or rule_results),
        )
        return CompatibilityResult(
            compatible=compatible,
            confidence=confidence,
            details=details,
            limitations=limitations,
            recommendations=recommendations,
            matched_rules=list(rule_results),
            field_compatibility=field_results,
            rule_results=rule_results,
            skipped_rules=skipped,
        )
