"""Generic commands over REST collections."""

import sys
from pathlib import Path
from typing import Any

import pandas as pd
import typer
from rich.table import Table

from freeagent.api.resources import REGISTRY, get_spec, resource_id
from freeagent.commands.common import console, handle_errors, open_api, parse_filters, print_json, read_payload

MAX_TABLE_COLUMNS = 6


def resources_command() -> None:
    """Show every collection the client knows about."""
    table = Table(title=f"Resources ({len(REGISTRY)})")
    table.add_column("Name", style="cyan")
    table.add_column("Group", style="magenta")
    table.add_column("Path", style="white")
    table.add_column("Operations", style="green")
    table.add_column("Actions", style="yellow")

    for spec in sorted(REGISTRY.values(), key=lambda s: (s.group, s.name)):
        operations = ", ".join(op for op in ("list", "get", "create", "update", "delete") if op in spec.operations)
        actions = ", ".join(action.name for action in spec.actions) or "[dim]-[/dim]"
        table.add_row(spec.name, spec.group, spec.path, operations, actions)

    console.print(table)


def pick_columns(items: list[dict[str, Any]]) -> list[str]:
    """Choose the scalar fields worth showing in a table.

    ``url`` is replaced by an ``id`` column; nested objects and lists are skipped.
    """
    columns: list[str] = []
    for item in items:
        for key, value in item.items():
            if key == "url" or key in columns or isinstance(value, (dict, list)):
                continue
            columns.append(key)
            if len(columns) >= MAX_TABLE_COLUMNS:
                return columns
    return columns


def render_table(title: str, items: list[dict[str, Any]]) -> None:
    columns = pick_columns(items)
    table = Table(title=title)
    table.add_column("id", style="cyan")
    for column in columns:
        table.add_column(column)

    for item in items:
        row_id = resource_id(item["url"]) if item.get("url") else ""
        values = ["" if item.get(column) is None else str(item.get(column)) for column in columns]
        table.add_row(row_id, *values)

    console.print(table)


def export_csv(items: list[dict[str, Any]], csv_path: str) -> Path:
    """Flatten records with pandas and write them as CSV."""
    path = Path(csv_path).expanduser()
    frame = pd.json_normalize(items)
    frame.to_csv(path, index=False)
    return path


def list_command(
    profile: str,
    resource: str,
    view: str | None = None,
    per_page: int | None = None,
    limit: int | None = None,
    filters: list[str] | None = None,
    as_json: bool = False,
    csv_path: str | None = None,
) -> None:
    """List records in a collection."""
    with handle_errors():
        api = open_api(profile)
        collection = api.collection(resource)
        items = list(collection.list(view=view, per_page=per_page, limit=limit, **parse_filters(filters)))

    # Some reference lists, such as email_addresses, are plain strings
    records = [item if isinstance(item, dict) else {"value": item} for item in items]

    if csv_path:
        try:
            path = export_csv(records, csv_path)
        except OSError as e:
            console.print(f"[red]Could not write {csv_path}: {e}[/red]", style="bold")
            sys.exit(1)
        console.print(f"[green]✓[/green] Wrote {len(items)} {collection.spec.name} to {path}")
        return

    if as_json:
        print_json(items)
        return

    if not items:
        console.print(f"[yellow]No {collection.spec.name} found[/yellow]")
        return

    render_table(f"{collection.spec.name} (showing {len(items)})", records)


def get_command(profile: str, resource: str, id: str) -> None:
    """Show one record as JSON."""
    with handle_errors():
        record = open_api(profile).collection(resource).get(id)
    print_json(record)


def create_command(profile: str, resource: str, data: str) -> None:
    """Create a record from a JSON file."""
    with handle_errors():
        attrs = read_payload(data)
        collection = open_api(profile).collection(resource)
        record = collection.create(attrs.get(collection.spec.singular, attrs))

    console.print(f"[green]✓[/green] Created {collection.spec.singular}")
    if record:
        print_json(record)


def update_command(profile: str, resource: str, id: str, data: str) -> None:
    """Update a record from a JSON file."""
    with handle_errors():
        attrs = read_payload(data)
        collection = open_api(profile).collection(resource)
        record = collection.update(id, attrs.get(collection.spec.singular, attrs))

    console.print(f"[green]✓[/green] Updated {collection.spec.singular} {resource_id(id)}")
    if record:
        print_json(record)


def delete_command(profile: str, resource: str, id: str, yes: bool = False) -> None:
    """Delete a record after confirmation."""
    with handle_errors():
        spec = get_spec(resource)
        if "delete" not in spec.operations:
            raise ValueError(f"{spec.name} does not support delete")

    if not yes and not typer.confirm(f"Delete {spec.name} {id}?"):
        console.print("[yellow]Cancelled[/yellow]")
        return

    with handle_errors():
        open_api(profile).collection(spec.name).delete(id)

    console.print(f"[green]✓[/green] Deleted {spec.name} {resource_id(id)}")


def action_command(profile: str, resource: str, id: str, name: str) -> None:
    """Run a named action such as mark_as_sent."""
    with handle_errors():
        result = open_api(profile).collection(resource).action(id, name)

    console.print(f"[green]✓[/green] {name} applied to {resource} {resource_id(id)}")
    if result:
        print_json(result)
