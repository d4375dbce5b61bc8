"""Schema lookup collaborators for the compatibility engine."""

from devcompat.registry.schema_registry import (
    FileSchemaRegistry,
    InMemorySchemaRegistry,
    SchemaRegistry,
    get_schema_registry,
    load_rules_file,
    load_schema_file,
)

__all__ = [
    "FileSchemaRegistry",
    "InMemorySchemaRegistry",
    "SchemaRegistry",
    "get_schema_registry",
    "load_rules_file",
    "load_schema_file",
]
