"""
collectiongen CLI - Command-line interface for collection generation

Usage:
    collectiongen generate <layer> <collection> <fields_file> -o <app_dir>
    collectiongen batch <config_file>
    collectiongen validate <fields_file>
    collectiongen check-drift <copy>...
    collectiongen field-types
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from pydantic import ValidationError
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from collectiongen.drift import DriftSourceError, canonical_table, compare, load_table
from collectiongen.field_types import FIELD_TYPE_TABLE, render_field_type_reference
from collectiongen.generator import (
    CollectionGenerator,
    GenerationResult,
    GenerationSession,
    write_result,
)
from collectiongen.spec import (
    DEFAULT_AUTH_IMPORT,
    CollectionOptions,
    CollectionRequest,
    GeneratorConfig,
    GeneratorSettings,
    SchemaValidationError,
    load_document,
    validate_schema,
)

app = typer.Typer(
    name="collectiongen",
    help="Generate team-scoped CRUD collections from field schemas",
    add_completion=False,
)
console = Console()
logger = logging.getLogger("collectiongen")


def _setup_logging(verbosity: int) -> None:
    """
    Configure the collectiongen logger.

    Args:
        verbosity: 0 = WARNING, 1 = INFO, 2+ = DEBUG
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setLevel(level)

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


@app.callback()
def main_callback(
    verbose: int = typer.Option(
        0,
        "--verbose", "-v",
        count=True,
        help="Increase log verbosity (-v info, -vv debug)",
    ),
) -> None:
    _setup_logging(verbose)


@app.command()
def generate(
    layer: str = typer.Argument(..., help="Layer (feature module) name, e.g. shop"),
    collection: str = typer.Argument(..., help="Collection name, e.g. products"),
    fields_file: Path = typer.Argument(
        ...,
        help="JSON or YAML field schema",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    dialect: str = typer.Option("sqlite", "--dialect", "-d", help="sqlite or postgres"),
    hierarchy: bool = typer.Option(False, "--hierarchy", help="Add tree columns and queries"),
    sortable: bool = typer.Option(False, "--sortable", help="Add an order column and reorder route"),
    no_team_scope: bool = typer.Option(False, "--no-team-scope", help="Drop the teamId column"),
    seed_count: int = typer.Option(25, "--seed-count", min=1, help="Default number of seed records"),
    auth_import: str = typer.Option(
        DEFAULT_AUTH_IMPORT,
        "--auth-import",
        help="Module providing resolveTeamAndCheckMembership",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Application root (defaults to the current directory)",
        resolve_path=True,
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing files"),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be generated without writing files",
    ),
) -> None:
    """Generate every artifact for one collection."""
    try:
        options = CollectionOptions(
            hierarchy=hierarchy,
            sortable=sortable,
            team_scoped=not no_team_scope,
            dialect=dialect,
            seed_count=seed_count,
        )
        request = CollectionRequest.from_schema(
            layer,
            collection,
            load_document(fields_file),
            options=options,
            source=str(fields_file),
        )
    except SchemaValidationError as e:
        _print_schema_errors(e)
        raise typer.Exit(1)
    except ValidationError as e:
        rprint(f"[red]✗[/red] {escape(str(e))}")
        raise typer.Exit(1)

    output = output or Path.cwd()
    generator = CollectionGenerator(GeneratorSettings(auth_import=auth_import))
    result = generator.generate(request)

    if dry_run and result.success:
        rprint(f"\n[yellow]Dry run - would generate to: {output}[/yellow]\n")
        _show_preview(result)
        return

    if not dry_run:
        write_result(result, output, force=force)

    _report(result, output)
    if not result.success:
        raise typer.Exit(1)


@app.command()
def batch(
    config_file: Path = typer.Argument(
        ...,
        help="Path to collectiongen.yaml",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Application root (defaults to the config file directory)",
        resolve_path=True,
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing files"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be generated"),
) -> None:
    """Generate every collection listed in a config file."""
    try:
        config = GeneratorConfig.from_file(config_file)
    except (ValidationError, yaml.YAMLError, UnicodeDecodeError) as e:
        rprint(f"[red]✗[/red] {config_file.name}: {escape(str(e))}")
        raise typer.Exit(1)

    output = output or config_file.parent
    generator = CollectionGenerator(config.settings, GenerationSession())
    failed = 0

    for entry in config.collections:
        try:
            request = config.request_for(entry, config_file.parent)
        except SchemaValidationError as e:
            _print_schema_errors(e)
            failed += 1
            continue
        except (ValidationError, OSError) as e:
            rprint(f"[red]✗[/red] {entry.layer}/{entry.name}: {escape(str(e))}")
            failed += 1
            continue

        result = generator.generate(request)
        if dry_run and result.success:
            _show_preview(result)
            continue
        if not dry_run:
            write_result(result, output, force=force)
        _report(result, output)
        if not result.success:
            failed += 1

    total = len(config.collections)
    if failed:
        rprint(f"\n[red]{failed} of {total} collections failed[/red]")
        raise typer.Exit(1)
    rprint(f"\n[green]✓[/green] {total} collections processed")


@app.command()
def validate(
    fields_file: Path = typer.Argument(
        ...,
        help="JSON or YAML field schema",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    hierarchy: bool = typer.Option(False, "--hierarchy", help="Validate for a hierarchy collection"),
    sortable: bool = typer.Option(False, "--sortable", help="Validate for a sortable collection"),
) -> None:
    """Validate a field schema without generating anything."""
    try:
        raw = load_document(fields_file)
    except SchemaValidationError as e:
        _print_schema_errors(e)
        raise typer.Exit(1)

    result = validate_schema(raw, hierarchy=hierarchy, sortable=sortable)

    for warning in result.warnings:
        rprint(f"[yellow]![/yellow] {escape(str(warning))}")
    if not result.valid:
        for error in result.errors:
            rprint(f"[red]✗[/red] {escape(str(error))}")
        raise typer.Exit(1)

    rprint(f"[green]✓[/green] Valid: [bold]{fields_file.name}[/bold]")

    table = Table()
    table.add_column("Field", style="cyan")
    table.add_column("Type")
    table.add_column("Required")
    table.add_column("Reference")

    for name, spec in raw.items():
        meta = spec.get("meta") or {}
        table.add_row(
            name,
            spec["type"],
            "yes" if meta.get("required") else "-",
            spec.get("refTarget") or "-",
        )

    rprint(table)


@app.command("check-drift")
def check_drift(
    copies: List[Path] = typer.Argument(
        ...,
        help="Copies of the field type table (.ts, .md, .json, .yaml)",
        resolve_path=True,
    ),
) -> None:
    """Compare other copies of the field type table against the generator's."""
    tables = []
    unreadable = 0
    for path in copies:
        try:
            tables.append(load_table(path))
        except DriftSourceError as e:
            rprint(f"[red]✗[/red] {escape(str(e))}")
            unreadable += 1

    report = compare(canonical_table(), tables)
    console.print(report.to_text(), highlight=False)

    if not report.in_sync or unreadable:
        rprint(f"\n[red]✗[/red] Drift detected in: {', '.join(report.mismatched_tables) or '-'}")
        raise typer.Exit(1)
    rprint("\n[green]✓[/green] All field type copies are in sync")


@app.command("field-types")
def field_types(
    markdown: bool = typer.Option(False, "--markdown", help="Print the markdown reference table"),
) -> None:
    """Show the canonical field type table."""
    if markdown:
        console.print(render_field_type_reference(), markup=False, highlight=False)
        return

    table = Table(title="Field types")
    table.add_column("Type", style="cyan")
    table.add_column("Storage")
    table.add_column("Validation")
    table.add_column("TypeScript")
    table.add_column("Default")

    for row in FIELD_TYPE_TABLE.values():
        table.add_row(row.type.value, row.storage, row.validation, row.generated_type, row.default)

    console.print(table)


@app.command()
def version() -> None:
    """Show version."""
    from collectiongen import __version__
    rprint(f"collectiongen {__version__}")


# ═══════════════════════════════════════════════════════════════════════════
# OUTPUT HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _print_schema_errors(error: SchemaValidationError) -> None:
    rprint(f"[red]✗[/red] Invalid schema{f' in {error.source}' if error.source else ''}")
    for issue in error.result.errors:
        rprint(f"  [red]•[/red] {escape(str(issue))}")


def _show_preview(result: GenerationResult) -> None:
    """Show the files a generation would write."""
    tree = Tree(f"[bold]{result.layer}/{result.collection}[/bold]")
    nodes: dict[str, Tree] = {}
    for path in sorted(result.paths):
        directory, _, name = path.rpartition("/")
        if directory not in nodes:
            nodes[directory] = tree.add(f"[blue]{escape(directory)}[/blue]")
        nodes[directory].add(escape(name))
    rprint(tree)
    for warning in result.warnings:
        rprint(f"[yellow]![/yellow] {escape(str(warning))}")


def _report(result: GenerationResult, output: Path) -> None:
    for warning in result.warnings:
        rprint(f"[yellow]![/yellow] {escape(str(warning))}")

    if not result.success:
        for error in result.errors:
            rprint(f"[red]✗[/red] {escape(error)}")
        return

    rprint(
        f"[green]✓[/green] {result.layer}/{result.collection}: "
        f"{len(result.written)} written, {len(result.unchanged)} unchanged"
    )
    if result.new_layer:
        steps = f"""
[bold]New layer:[/bold] {result.layer}
  Add [cyan]./layers/{result.layer}[/cyan] to the app's extends
  Export the schema from [cyan]server/db/schema.ts[/cyan]
  Run your migration tool against {output}
"""
        rprint(Panel(steps, title="Next"))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
