"""CLI entry-point: compare two device specification files."""

import json
import logging
from pathlib import Path
from typing import Any

import typer
import yaml
from rich.console import Console
from rich.markup import escape

from devcompat.compat.engine import CompatibilityEngine
from devcompat.config import get_settings
from devcompat.exceptions import CompatibilityInputError
from devcompat.registry.schema_registry import (
    FileSchemaRegistry,
    get_schema_registry,
    load_rules_file,
)
from devcompat.schemas.models import Compatibility

app = typer.Typer(help="Device compatibility engine")

_VERDICT_STYLE = {
    Compatibility.FULL: "green",
    Compatibility.PARTIAL: "yellow",
    Compatibility.NONE: "red",
}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


def _load_device(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@app.command()
def compare(
    source: Path = typer.Argument(..., help="Source device specification (JSON or YAML)"),
    target: Path = typer.Argument(..., help="Target device specification (JSON or YAML)"),
    schema_dir: Path = typer.Option(None, help="Directory of category schemas (default from DEVCOMPAT_SCHEMA_DIR)"),
    rules: Path = typer.Option(None, help="YAML/JSON file of extra compatibility rules"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
):
    """Compare two devices and print the compatibility verdict."""
    console = Console()
    settings = get_settings()
    registry = FileSchemaRegistry(schema_dir) if schema_dir else get_schema_registry(settings)

    try:
        source_spec = _load_device(source)
        target_spec = _load_device(target)
        extra_rules = load_rules_file(rules) if rules else []
    except (OSError, yaml.YAMLError, CompatibilityInputError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    engine = CompatibilityEngine(schema_registry=registry, settings=settings)
    try:
        result = engine.compare(source_spec, target_spec, rules=extra_rules)
    except CompatibilityInputError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
        return

    style = _VERDICT_STYLE[result.compatible]
    console.print(f"[{style}]{result.compatible.value.upper()}[/{style}] ({result.confidence:.0%} confidence)")
    console.print(result.details, highlight=False, markup=False)
    for name, field in result.field_compatibility.items():
        console.print(f"  {field.compatible.value:<8} {name}: {field.message}", highlight=False, markup=False)
    if result.skipped_rules:
        console.print(f"[yellow]Skipped rules (processor error): {', '.join(result.skipped_rules)}[/yellow]")


@app.command()
def processors():
    """List registered rule processor names."""
    engine = CompatibilityEngine()
    for name in engine.rule_processors.names():
        typer.echo(name)


if __name__ == "__main__":
    app()
