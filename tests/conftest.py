"""Pytest configuration and shared fixtures."""

import pytest

from devcompat.compat.engine import CompatibilityEngine
from devcompat.config import Settings
from devcompat.registry.schema_registry import InMemorySchemaRegistry
from devcompat.schemas.models import CategorySchema, DeviceSpecificationContext


LAPTOP_SCHEMA = {
    "id": "laptops",
    "name": "Laptops",
    "version": "1.0.0",
    "fields": {
        "powerRequirement": {
            "type": "number",
            "metadata": {"label": "Power requirement", "importance": "high", "weight": 0.9},
        },
        "ports": {"type": "array", "metadata": {"label": "Ports", "weight": 0.6}},
        "quality": {
            "type": "enum",
            "constraints": {"enum": ["low", "medium", "high", "ultra"]},
            "metadata": {"label": "Quality", "weight": 0.5},
        },
        "voltage": {"type": "number", "metadata": {"label": "Voltage", "weight": 0.8}},
    },
    "compatibilityRules": [
        {
            "id": "laptop-power",
            "name": "power_compatibility",
            "description": "Charger must supply what the laptop draws",
            "sourceField": "powerRequirement",
            "targetField": "powerOutput",
            "condition": "source <= target",
            "compatibilityType": "full",
            "message": "Power is sufficient",
        }
    ],
}

# Same shape as stored payloads, with fields given in list form
CHARGER_SCHEMA = {
    "id": "chargers",
    "name": "Chargers",
    "version": "2.0.0",
    "fields": [
        {"name": "powerOutput", "type": "number", "metadata": {"label": "Power output", "weight": 0.9}},
        {"name": "ports", "type": "array", "metadata": {"label": "Ports", "weight": 0.6}},
        {"name": "voltage", "type": "number", "metadata": {"label": "Voltage", "weight": 0.8}},
    ],
}


def make_device(device_id: str, category_id: str, version: str | None = None, **specs) -> DeviceSpecificationContext:
    return DeviceSpecificationContext(
        device_id=device_id,
        category_id=category_id,
        schema_version=version,
        specifications=specs,
    )


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def laptop_schema():
    return CategorySchema.model_validate(LAPTOP_SCHEMA)


@pytest.fixture
def charger_schema():
    return CategorySchema.model_validate(CHARGER_SCHEMA)


@pytest.fixture
def schema_registry(laptop_schema, charger_schema):
    return InMemorySchemaRegistry([laptop_schema, charger_schema])


@pytest.fixture
def engine(schema_registry, settings):
    return CompatibilityEngine(schema_registry=schema_registry, settings=settings)


@pytest.fixture
def laptop():
    return make_device(
        "laptop-1",
        "laptops",
        "1.0.0",
        name="UltraBook 14",
        powerRequirement=100,
        ports=["usb-c", "hdmi", "audio"],
        voltage=20,
    )


@pytest.fixture
def charger():
    return make_device(
        "charger-1",
        "chargers",
        "2.0.0",
        name="PowerBrick 120",
        powerOutput=120,
        ports=["usb-c", "hdmi", "audio"],
        voltage=20,
    )
