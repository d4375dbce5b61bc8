"""Tests for the compatibility engine (aggregation, rule applicability, degradation)."""

import asyncio

import pytest

from devcompat.compat.engine import CompatibilityEngine, generate_details
from devcompat.compat.processors import PowerCompatibilityProcessor
from devcompat.exceptions import CompatibilityInputError
from devcompat.registry.schema_registry import InMemorySchemaRegistry
from devcompat.schemas.models import (
    Compatibility,
    CompatibilityRule,
    ComparisonContext,
    RuleCompatibilityResult,
)

from conftest import make_device


def _power_rule(rule_id: str = "power-test", **kwargs) -> CompatibilityRule:
    return CompatibilityRule(
        id=rule_id,
        name=kwargs.pop("name", "power_compatibility"),
        description="Test power compatibility",
        source_field=kwargs.pop("source_field", "powerRequirement"),
        target_field=kwargs.pop("target_field", "powerOutput"),
        condition="source <= target",
        compatibility_type="full",
        message="Power is sufficient",
        **kwargs,
    )


class FixedProcessor:
    def __init__(self, result: RuleCompatibilityResult):
        self.result = result
        self.calls = 0

    def process(self, rule, context):
        self.calls += 1
        return self.result


class ExplodingProcessor:
    def process(self, rule, context):
        raise RuntimeError("boom")


class TestCompare:

    def test_compatible_laptop_and_charger(self, engine, laptop, charger):
        result = engine.compare(laptop, charger)
        assert result.compatible == Compatibility.FULL
        assert result.matched_rules == ["laptop-power"]
        assert set(result.field_compatibility) == {"name", "ports", "voltage"}
        assert result.limitations == []
        # fields: ports 0.6*1 + voltage 0.8*1 + name 0*0; rule: 1*0.95
        assert result.confidence == pytest.approx((0.6 + 0.8 + 0.95) / (0.6 + 0.8 + 1.0), abs=1e-4)

    def test_insufficient_power_makes_result_none(self, engine, laptop, charger):
        weak = charger.model_copy(update={"specifications": {**charger.specifications, "powerOutput": 60}})
        result = engine.compare(laptop, weak)
        assert result.compatible == Compatibility.NONE
        assert result.limitations
        assert result.recommendations
        assert "Limitations:" in result.details
        assert "Recommendations:" in result.details

    def test_accepts_camel_case_payloads(self, engine):
        result = engine.compare(
            {"deviceId": "a", "categoryId": "laptops", "schemaVersion": "1.0.0", "specifications": {"powerRequirement": 90}},
            {"deviceId": "b", "categoryId": "chargers", "specifications": {"powerOutput": 100}},
        )
        assert result.matched_rules == ["laptop-power"]
        dumped = result.model_dump(by_alias=True)
        assert "matchedRules" in dumped and "fieldCompatibility" in dumped

    def test_one_sided_fields_are_skipped(self, engine, laptop, charger):
        result = engine.compare(laptop, charger)
        assert "powerRequirement" not in result.field_compatibility
        assert "powerOutput" not in result.field_compatibility

    def test_is_pure_for_identical_input(self, engine, laptop, charger):
        assert engine.compare(laptop, charger) == engine.compare(laptop, charger)


class TestWorstCase:

    def test_any_none_field_makes_overall_none(self, engine):
        source = make_device("a", "laptops", "1.0.0", voltage=20, ports=["usb-c"], quality="high")
        target = make_device("b", "laptops", "1.0.0", voltage=5, ports=["usb-c"], quality="high")
        result = engine.compare(source, target)
        assert result.field_compatibility["voltage"].compatible == Compatibility.NONE
        assert result.field_compatibility["ports"].compatible == Compatibility.FULL
        assert result.compatible == Compatibility.NONE

    def test_partial_without_none_is_partial(self, engine):
        source = make_device("a", "laptops", "1.0.0", quality="medium", voltage=20)
        target = make_device("b", "laptops", "1.0.0", quality="high", voltage=20)
        result = engine.compare(source, target)
        assert result.compatible == Compatibility.PARTIAL
        # quality partial 0.5*0.5, voltage full 0.8*1
        assert result.confidence == pytest.approx((0.25 + 0.8) / 1.3, abs=1e-4)

    def test_rule_none_overrides_full_fields(self, engine):
        engine.register_rule_processor(
            "always_none", FixedProcessor(RuleCompatibilityResult(compatible="none", confidence=1.0))
        )
        source = make_device("a", "laptops", "1.0.0", voltage=20)
        target = make_device("b", "laptops", "1.0.0", voltage=20)
        rule = _power_rule("r1", name="always_none", source_field="voltage", target_field="voltage")
        result = engine.compare(source, target, rules=[rule])
        assert result.field_compatibility["voltage"].compatible == Compatibility.FULL
        assert result.compatible == Compatibility.NONE


class TestRuleApplicability:

    def test_applicable_when_both_fields_present(self):
        context = ComparisonContext(
            source_device=make_device("device1", "category1", power=100),
            target_device=make_device("device2", "category2", maxPower=150),
        )
        rule = _power_rule(source_field="power", target_field="maxPower")
        assert CompatibilityEngine.is_rule_applicable(rule, context)

    def test_not_applicable_when_target_field_missing(self):
        context = ComparisonContext(
            source_device=make_device("device1", "category1", power=100),
            target_device=make_device("device2", "category2"),
        )
        rule = _power_rule(source_field="power", target_field="maxPower")
        assert not CompatibilityEngine.is_rule_applicable(rule, context)

    def test_applicable_when_field_is_explicitly_null(self, settings):
        engine = CompatibilityEngine(settings=settings)
        result = engine.compare(
            make_device("a", "x", powerRequirement=None),
            make_device("b", "y", powerOutput=100),
            rules=[_power_rule("p")],
        )
        assert result.matched_rules == ["p"]
        assert result.compatible == Compatibility.NONE
        assert result.limitations == ["Power values must be numeric"]

    def test_inapplicable_rule_not_matched_and_not_run(self, settings):
        processor = FixedProcessor(RuleCompatibilityResult(compatible="none", confidence=1.0))
        engine = CompatibilityEngine(settings=settings)
        engine.register_rule_processor("custom", processor)
        rule = _power_rule("r1", name="custom")
        source = make_device("a", "x", powerRequirement=10)
        target = make_device("b", "y", somethingElse=1)
        for _ in range(2):
            result = engine.compare(source, target, rules=[rule])
            assert result.matched_rules == []
            assert result.compatible == Compatibility.FULL
        assert processor.calls == 0


class TestCustomProcessors:

    def test_custom_processor_result_is_used_verbatim(self, settings):
        expected = RuleCompatibilityResult(
            compatible="partial",
            confidence=0.6,
            limitations=["Needs firmware update"],
            recommendations=["Update firmware to 2.1"],
        )
        processor = FixedProcessor(expected)
        engine = CompatibilityEngine(settings=settings)
        engine.register_rule_processor("firmware_compatibility", processor)
        rule = _power_rule("fw", name="firmware_compatibility", source_field="fw", target_field="fw")
        source = make_device("a", "x", fw="1.0")
        target = make_device("b", "y", fw="2.1")

        result = engine.compare(source, target, rules=[rule])

        direct = processor.process(rule, ComparisonContext(source_device=source, target_device=target))
        assert result.rule_results["fw"] == direct
        assert result.matched_rules == ["fw"]
        assert result.limitations == ["Needs firmware update"]

    def test_context_extras_reach_processor(self, settings):
        seen = {}

        class UseCaseProcessor:
            def process(self, rule, context):
                seen["connection_type"] = context.connection_type
                seen["use_case"] = context.use_case
                return RuleCompatibilityResult(compatible="full", confidence=1.0)

        engine = CompatibilityEngine(settings=settings)
        engine.register_rule_processor("use_case_check", UseCaseProcessor())
        rule = _power_rule("uc", name="use_case_check", source_field="v", target_field="v")
        engine.compare(
            make_device("a", "x", v=1),
            make_device("b", "y", v=1),
            rules=[rule],
            connection_type="wired",
            use_case="gaming",
        )
        assert seen == {"connection_type": "wired", "use_case": "gaming"}

    def test_engine_settings_reach_builtin_processors(self):
        from devcompat.config import Settings

        engine = CompatibilityEngine(settings=Settings(power_headroom=1.5))
        result = engine.compare(
            make_device("a", "x", powerRequirement=100),
            make_device("b", "y", powerOutput=50),
            rules=[_power_rule("p")],
        )
        assert result.recommendations == ["Use a power supply with at least 150W capacity"]

    def test_override_builtin(self, engine, laptop, charger):
        engine.register_rule_processor(
            "power_compatibility",
            FixedProcessor(RuleCompatibilityResult(compatible="partial", confidence=0.5)),
        )
        result = engine.compare(laptop, charger)
        assert result.rule_results["laptop-power"].compatible == Compatibility.PARTIAL

    def test_failing_processor_is_isolated(self, engine, laptop, charger):
        engine.register_rule_processor("explodes", ExplodingProcessor())
        rule = _power_rule("bad", name="explodes")
        result = engine.compare(laptop, charger, rules=[rule])
        assert "bad" not in result.matched_rules
        assert result.skipped_rules == ["bad"]
        assert result.matched_rules == ["laptop-power"]
        assert result.compatible == Compatibility.FULL

    def test_unknown_rule_name_falls_back_to_default(self, settings):
        engine = CompatibilityEngine(settings=settings)
        rule = CompatibilityRule(
            id="weight", name="weight_limit", source_field="weight", target_field="maxLoad",
            condition="source <= target",
        )
        result = engine.compare(
            make_device("a", "x", weight=9), make_device("b", "y", maxLoad=5), rules=[rule]
        )
        assert result.matched_rules == ["weight"]
        assert result.compatible == Compatibility.NONE

    def test_bad_condition_is_skipped(self, settings):
        engine = CompatibilityEngine(settings=settings)
        rule = CompatibilityRule(
            id="weird", name="weird", source_field="a", target_field="b", condition="source <=> target",
        )
        result = engine.compare(make_device("a", "x", a=1), make_device("b", "y", b=2), rules=[rule])
        assert result.skipped_rules == ["weird"]

    def test_no_processor_at_all(self, settings):
        engine = CompatibilityEngine(settings=settings)
        engine.rule_processors.unregister("default")
        rule = CompatibilityRule(id="r", name="nothing", source_field="a", target_field="b")
        result = engine.compare(make_device("a", "x", a=1), make_device("b", "y", b=2), rules=[rule])
        assert result.matched_rules == []
        assert result.skipped_rules == ["r"]


class TestRuleCollection:

    def test_rule_ids_deduplicated_first_wins(self, engine, laptop, charger):
        override = _power_rule("laptop-power", name="custom_power")
        engine.register_rule_processor(
            "custom_power", FixedProcessor(RuleCompatibilityResult(compatible="partial", confidence=0.4))
        )
        result = engine.compare(laptop, charger, rules=[override])
        assert result.matched_rules == ["laptop-power"]
        assert result.rule_results["laptop-power"].confidence == pytest.approx(0.4)

    def test_engine_rules(self, settings):
        engine = CompatibilityEngine(settings=settings, rules=[_power_rule("pre")])
        assert [r.id for r in engine.rules] == ["pre"]
        result = engine.compare(
            make_device("a", "x", powerRequirement=200), make_device("b", "y", powerOutput=100)
        )
        assert result.matched_rules == ["pre"]
        assert result.compatible == Compatibility.NONE

    def test_rule_weight(self, settings):
        engine = CompatibilityEngine(settings=settings)
        engine.register_rule_processor(
            "half", FixedProcessor(RuleCompatibilityResult(compatible="full", confidence=0.5))
        )
        rule = _power_rule("w", name="half", source_field="v", target_field="v", weight=3.0)
        source = make_device("a", "x", v=1)
        target = make_device("b", "y", v=1)
        result = engine.compare(source, target, rules=[rule])
        # field v: inferred, weight 1.0, full; rule: weight 3, confidence 0.5
        assert result.confidence == pytest.approx((1.0 + 1.5) / 4.0)


class TestDegradation:

    def test_missing_schema_uses_fields_directly(self, settings):
        engine = CompatibilityEngine(schema_registry=InMemorySchemaRegistry(), settings=settings)
        source = make_device("a", "unknown", "9.9", name="Thing A", speed=100, modes=["a", "b"])
        target = make_device("b", "unknown", "9.9", name="Thing B", speed=112, modes=["a", "b"])
        result = engine.compare(source, target)
        assert set(result.field_compatibility) == {"speed", "modes"}  # display name not compared
        assert result.compatible == Compatibility.PARTIAL

    def test_unknown_schema_version(self, engine):
        source = make_device("a", "laptops", "7.0.0", quality="medium")
        target = make_device("b", "laptops", "7.0.0", quality="high")
        result = engine.compare(source, target)
        # without the enum definition the values compare as plain strings
        assert result.field_compatibility["quality"].compatible == Compatibility.NONE

    def test_failing_registry_degrades(self, settings):
        class BrokenRegistry:
            def get_schema(self, category_id, version=None):
                raise ConnectionError("database down")

        engine = CompatibilityEngine(schema_registry=BrokenRegistry(), settings=settings)
        result = engine.compare(make_device("a", "x", v=1), make_device("b", "y", v=1))
        assert result.compatible == Compatibility.FULL

    def test_nothing_comparable(self, settings):
        engine = CompatibilityEngine(settings=settings)
        result = engine.compare(make_device("a", "x", p=1), make_device("b", "y", q=2))
        assert result.compatible == Compatibility.FULL
        assert result.confidence == 0.0
        assert "No comparable" in result.details


class TestMalformedInput:

    def test_specifications_not_a_mapping(self, engine):
        with pytest.raises(CompatibilityInputError):
            engine.compare(
                {"deviceId": "a", "categoryId": "x", "specifications": ["not", "a", "mapping"]},
                {"deviceId": "b", "categoryId": "y", "specifications": {}},
            )

    def test_rule_missing_required_keys(self, engine, laptop, charger):
        with pytest.raises(CompatibilityInputError):
            engine.compare(laptop, charger, rules=[{"id": "r", "name": "power_compatibility"}])

    def test_input_error_is_a_value_error(self, engine):
        with pytest.raises(ValueError):
            engine.compare("not a device", {"deviceId": "b", "categoryId": "y"})


class TestAsyncCompare:

    def test_awaits_async_registry(self, laptop_schema, charger_schema, laptop, charger, settings):
        class AsyncRegistry:
            def __init__(self):
                self._inner = InMemorySchemaRegistry([laptop_schema, charger_schema])

            async def get_schema(self, category_id, version=None):
                return self._inner.get_schema(category_id, version)

        engine = CompatibilityEngine(schema_registry=AsyncRegistry(), settings=settings)
        result = asyncio.run(engine.acompare(laptop, charger))
        assert result.matched_rules == ["laptop-power"]

    def test_timeout_degrades(self, laptop, charger):
        from devcompat.config import Settings

        class SlowRegistry:
            async def get_schema(self, category_id, version=None):
                await asyncio.sleep(1)

        engine = CompatibilityEngine(
            schema_registry=SlowRegistry(), settings=Settings(schema_lookup_timeout=0.01)
        )
        result = asyncio.run(engine.acompare(laptop, charger))
        assert result.matched_rules == []
        assert "ports" in result.field_compatibility

    def test_sync_compare_with_async_registry_degrades(self, laptop, charger, settings):
        class AsyncRegistry:
            async def get_schema(self, category_id, version=None):
                return None

        engine = CompatibilityEngine(schema_registry=AsyncRegistry(), settings=settings)
        result = engine.compare(laptop, charger)
        assert result.matched_rules == []


def test_generate_details():
    details = generate_details(
        Compatibility.PARTIAL,
        0.75,
        ["Limited power delivery", "Resolution mismatch"],
        ["Use higher wattage adapter", "Check display settings"],
        source_name="Source Device",
        target_name="Target Device",
    )
    assert "Source Device" in details
    assert "Target Device" in details
    assert "PARTIAL" in details
    assert "75%" in details
    assert "Limitations:" in details
    assert "- Limited power delivery" in details
    assert "Recommendations:" in details
    assert "- Use higher wattage adapter" in details


def test_details_fall_back_to_device_id(engine):
    result = engine.compare(make_device("dev-a", "x", v=1), make_device("dev-b", "y", v=1))
    assert "Source: dev-a" in result.details
    assert "Target: dev-b" in result.details
    assert "Limitations:" not in result.details


def test_register_rule_processor_validates():
    engine = CompatibilityEngine()
    with pytest.raises(TypeError):
        engine.register_rule_processor("bad", object())
    engine.register_rule_processor("power_v2", PowerCompatibilityProcessor(headroom=1.1))
    assert "power_v2" in engine.rule_processors
