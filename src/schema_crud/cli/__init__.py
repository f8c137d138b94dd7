"""CLI for inspecting, validating and generating schema documents.

Usage:
    schema-crud validate users
    schema-crud validate users@db1
    schema-crud show users --context list,form
    schema-crud show users --context detail --related
    schema-crud list
    schema-crud connections
    schema-crud generate users --connection default --output schemas/

Commands:
    validate     - Load, validate and normalize a document; print its fields
    show         - Print the context-filtered view of a document as JSON
    list         - List documents in the schema store
    connections  - List configured database connections
    generate     - Draft a document from a live table
"""

import argparse
import json
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from schema_crud.config.loader import load_engine_config
from schema_crud.config.models import EngineConfig
from schema_crud.errors import SchemaCrudError
from schema_crud.factory import resolve_url
from schema_crud.schema.generator import generate_schema
from schema_crud.schema.introspector import SchemaIntrospector
from schema_crud.service import SchemaService

console = Console()

DEFAULT_CONFIG_FILE = "schema_crud.toml"


# ============================================================================
# Helpers
# ============================================================================


def _load_config(args: argparse.Namespace) -> EngineConfig:
    """Config from ``--config``, else ``./schema_crud.toml`` if present, else defaults.

    Raises:
        FileNotFoundError: If ``--config`` names a missing file.
    """
    if args.config:
        config = load_engine_config(args.config)
    elif Path(DEFAULT_CONFIG_FILE).exists():
        config = load_engine_config(DEFAULT_CONFIG_FILE)
    else:
        config = EngineConfig()

    if getattr(args, "schema_path", None):
        config = config.model_copy(update={"schema_path": args.schema_path})
    return config


def _flag(value: bool | None) -> str:
    if value is None:
        return "[dim]-[/dim]"
    return "[green]yes[/green]" if value else "[red]no[/red]"


# ============================================================================
# Commands
# ============================================================================


def cmd_validate(args: argparse.Namespace) -> int:
    """Load a document through the full pipeline and print its fields.

    Returns:
        0 if the document is valid, 1 otherwise.
    """
    try:
        service = SchemaService(_load_config(args))
        schema = service.get_schema_by_reference(args.model)
    except (SchemaCrudError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    console.print(
        f"[bold green]v[/bold green] [bold cyan]{schema.model}[/bold cyan] "
        f"[dim](table {schema.table}, connection {schema.source_connection or schema.connection or 'default'})[/dim]"
    )

    table = Table(title=f"Fields of {schema.model}", show_header=True, header_style="bold")
    table.add_column("Field")
    table.add_column("Type")
    table.add_column("Required")
    table.add_column("Writable")
    table.add_column("Visible in")

    for name, field in schema.fields.items():
        table.add_row(
            name,
            field.type.value,
            _flag(field.required),
            _flag(field.is_writable),
            ", ".join(field.visibility) or "[dim](none)[/dim]",
        )
    console.print(table)

    if schema.relationships:
        console.print("\n[bold]Relationships:[/bold]")
        for rel in schema.relationships:
            console.print(f"  - {rel.name} [dim]({rel.type.value})[/dim]")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Print a filtered view as JSON.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        service = SchemaService(_load_config(args))
        ref_schema = service.get_schema_by_reference(args.model)
        view = service.filter_schema_with_related(
            ref_schema,
            args.context,
            include_related=args.related,
            related_context=args.related_context,
        )
    except (SchemaCrudError, FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    console.print_json(json.dumps(view, default=str))
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    """List documents in the schema store.

    Returns:
        0 always (informational command).
    """
    config = _load_config(args)
    service = SchemaService(config)
    models = service.loader.list_models(args.connection)

    if not models:
        console.print(f"[yellow]No schema documents in {service.loader.schema_path}[/yellow]")
        return 0

    table = Table(title=f"Schemas in {service.loader.schema_path}", show_header=True, header_style="bold")
    table.add_column("Model")
    for model in models:
        table.add_row(model)
    console.print(table)
    return 0


def cmd_connections(args: argparse.Namespace) -> int:
    """List configured connections.

    Returns:
        0 on success, 1 if the config file is missing.
    """
    try:
        config = _load_config(args)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if not config.connections:
        console.print("[yellow]No connections configured.[/yellow]")
        return 0

    default = config.default_connection or "default"
    table = Table(title="Connections", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Description")

    for name, profile in config.connections.items():
        marker = "[bold green]*[/bold green]" if name == default else " "
        table.add_row(marker, name, profile.provider, profile.description or "")
    console.print(table)
    console.print("\n[bold green]*[/bold green] = default connection")
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Introspect a table and write a draft document.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    name = args.connection or config.default_connection or "default"
    profile = config.connections.get(name)
    if profile is None:
        console.print(f"[red]Error: connection '{name}' is not configured[/red]")
        return 1

    output_dir = Path(args.output or config.schema_path)
    target = output_dir / f"{args.table}.json"
    if target.exists() and not args.force:
        console.print(f"[red]Error: {target} exists (use --force to overwrite)[/red]")
        return 1

    console.print(f"Introspecting [bold cyan]{args.table}[/bold cyan] on [bold]{name}[/bold]...", style="dim")
    try:
        with SchemaIntrospector(resolve_url(profile)) as introspector:
            table_info = introspector.introspect_table(args.table, args.db_schema)
    except LookupError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except Exception as e:
        console.print(f"[red]Error: failed to connect to database: {e}[/red]")
        return 1

    document = generate_schema(table_info)
    output_dir.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")

    console.print(
        f"[bold green]v[/bold green] Wrote {target} "
        f"[dim]({len(document['fields'])} fields, {len(document.get('details', []))} details)[/dim]"
    )
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema-crud",
        description="Schema-driven CRUD engine toolkit",
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to the engine TOML config (default: ./{DEFAULT_CONFIG_FILE} if present)",
    )
    parser.add_argument(
        "--schema-path",
        default=None,
        help="Schema document directory (overrides the config file)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_validate = subparsers.add_parser("validate", help="Validate a schema document")
    p_validate.add_argument("model", help="Model name, optionally qualified as model@connection")
    p_validate.set_defaults(func=cmd_validate)

    p_show = subparsers.add_parser("show", help="Print a context-filtered schema view")
    p_show.add_argument("model", help="Model name, optionally qualified as model@connection")
    p_show.add_argument(
        "--context",
        default=None,
        help="Context(s): list, form, create, edit, detail, meta, comma-separated (default: full)",
    )
    p_show.add_argument("--related", action="store_true", help="Include related schemas")
    p_show.add_argument("--related-context", default="list", help="Context for related schemas")
    p_show.set_defaults(func=cmd_show)

    p_list = subparsers.add_parser("list", help="List schema documents")
    p_list.add_argument("--connection", default=None, help="List a connection subdirectory")
    p_list.set_defaults(func=cmd_list)

    p_connections = subparsers.add_parser("connections", help="List configured connections")
    p_connections.set_defaults(func=cmd_connections)

    p_generate = subparsers.add_parser("generate", help="Draft a schema document from a live table")
    p_generate.add_argument("table", help="Table to introspect")
    p_generate.add_argument("--connection", default=None, help="Connection to introspect")
    p_generate.add_argument("--output", default=None, help="Output directory (default: schema path)")
    p_generate.add_argument("--db-schema", default="public", help="PostgreSQL schema (default: public)")
    p_generate.add_argument("--force", action="store_true", help="Overwrite an existing document")
    p_generate.set_defaults(func=cmd_generate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
