"""Category schema registry: in-memory store with an optional YAML/JSON directory loader."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any, Protocol

import yaml

from devcompat.config import Settings, get_settings
from devcompat.exceptions import CompatibilityInputError, SchemaConflictError
from devcompat.schemas.models import CategorySchema, CompatibilityRule, validate_payload

logger = logging.getLogger(__name__)

SCHEMA_SUFFIXES = (".yaml", ".yml", ".json")


class SchemaRegistry(Protocol):
    def get_schema(self, category_id: str, version: str | None = None) -> CategorySchema | None: ...


class InMemorySchemaRegistry:
    """Schemas keyed by category id, then version. A registered version never changes."""

    def __init__(self, schemas: Iterable[CategorySchema | dict[str, Any]] = ()) -> None:
        self._schemas: dict[str, dict[str, CategorySchema]] = {}
        for schema in schemas:
            self.register_schema(schema)

    def register_schema(self, schema: CategorySchema | dict[str, Any]) -> CategorySchema:
        """Register one schema version.

        Re-registering an identical schema is a no-op; a different schema under an existing
        ``(id, version)`` raises ``SchemaConflictError``.
        """
        schema = validate_payload(CategorySchema, schema, "category schema")
        versions = self._schemas.setdefault(schema.id, {})
        existing = versions.get(schema.version)
        if existing is not None:
            if existing != schema:
                raise SchemaConflictError(
                    f"schema {schema.id} v{schema.version} is already registered with different content"
                )
            return existing
        versions[schema.version] = schema
        logger.info("Registered schema %s (v%s, %d fields)", schema.id, schema.version, len(schema.fields))
        return schema

    def get_schema(self, category_id: str, version: str | None = None) -> CategorySchema | None:
        """Schema for ``category_id`` at ``version``; the latest registered version if omitted."""
        versions = self._schemas.get(category_id)
        if not versions:
            return None
        if version is None:
            return next(reversed(versions.values()))
        return versions.get(version)

    def list_versions(self, category_id: str) -> list[str]:
        return list(self._schemas.get(category_id, {}))

    def all_schemas(self) -> list[CategorySchema]:
        """Latest version of every registered category."""
        return [next(reversed(v.values())) for v in self._schemas.values() if v]

    def __len__(self) -> int:
        return sum(len(v) for v in self._schemas.values())


class FileSchemaRegistry(InMemorySchemaRegistry):
    """In-memory registry populated from every schema file in a directory."""

    def __init__(self, directory: str | Path) -> None:
        super().__init__()
        self.directory = Path(directory)
        self.load_directory(self.directory)

    def load_directory(self, directory: str | Path) -> int:
        """Load all ``*.yaml``/``*.yml``/``*.json`` files; unusable files are skipped. Returns count."""
        directory = Path(directory)
        if not directory.is_dir():
            logger.warning("Schema directory not found: %s", directory)
            return 0
        loaded = 0
        for path in sorted(p for p in directory.iterdir() if p.suffix.lower() in SCHEMA_SUFFIXES):
            try:
                for schema in load_schema_file(path):
                    self.register_schema(schema)
                    loaded += 1
            except (OSError, yaml.YAMLError, CompatibilityInputError, SchemaConflictError) as e:
                logger.warning("Skipping schema file %s: %s", path, e)
        logger.info("Loaded %d schema(s) from %s", loaded, directory)
        return loaded


def _load_yaml(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def load_schema_file(path: str | Path) -> list[CategorySchema]:
    """Schemas in one file: a single schema mapping, a list, or a mapping with a ``schemas`` list."""
    data = _load_yaml(Path(path))
    if isinstance(data, dict) and "schemas" in data:
        data = data["schemas"]
    entries = data if isinstance(data, list) else [data]
    return [validate_payload(CategorySchema, entry, f"category schema in {path}") for entry in entries]


def load_rules_file(path: str | Path) -> list[CompatibilityRule]:
    """Compatibility rules in one file: a list, or a mapping with a ``rules`` list."""
    data = _load_yaml(Path(path))
    if isinstance(data, dict):
        data = data.get("rules", [])
    if not isinstance(data, list):
        raise CompatibilityInputError(f"Malformed rules file {path}: expected a list of rules")
    return [validate_payload(CompatibilityRule, entry, f"compatibility rule in {path}") for entry in data]


def get_schema_registry(settings: Settings | None = None) -> InMemorySchemaRegistry:
    """File-backed registry when ``schema_dir`` is configured, otherwise an empty in-memory one."""
    settings = settings or get_settings()
    if settings.schema_path is not None:
        logger.info("Using file-based schema registry (%s)", settings.schema_path)
        return FileSchemaRegistry(settings.schema_path)
    return InMemorySchemaRegistry()
