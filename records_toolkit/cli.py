#!/usr/bin/env python3
"""
Command-line interface for the Records Toolkit.

Provides trash inspection, restoration and maintenance tools.
"""

import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
import pandas as pd  # type: ignore[import-untyped]
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .config import RecordsConfig, TrashBackend, get_config
from .documents import DocumentDatabase, MemoryDocumentCollection
from .trash import (
    DisplayInfoResolver,
    EventBus,
    FileKeyValueStore,
    RestorationRouter,
    SoftDeleteStore,
    TrashAdmin,
    TrashError,
    TrashRecord,
    build_restoration_router,
    default_display_resolver,
    get_trash_storage,
)
from .trash.catalog import FLAT_TYPES, QUOTE_PARENT_TYPES

console = Console()


@dataclass
class TrashServices:
    store: SoftDeleteStore
    router: RestorationRouter
    admin: TrashAdmin
    display: DisplayInfoResolver


async def build_services(config: Optional[RecordsConfig] = None) -> TrashServices:
    """Wire the trash store and restore router from configuration."""
    config = config or get_config()

    storage = await get_trash_storage(**config.get_trash_storage_config())
    store = SoftDeleteStore(storage)

    tags = sorted({t.value for t in FLAT_TYPES + QUOTE_PARENT_TYPES})
    collections: Dict[str, Any]
    if TrashBackend(config.trash_storage_backend) == TrashBackend.MEMORY:
        collections = {tag: MemoryDocumentCollection(tag) for tag in tags}
    else:
        database = DocumentDatabase(
            config.documents_database_url or config.trash_database_url or ""
        )
        database.initialize()
        collections = {tag: database.collection(tag) for tag in tags}

    router = build_restoration_router(
        store,
        flat_services={t.value: collections[t.value] for t in FLAT_TYPES},
        quote_parents={t.value: collections[t.value] for t in QUOTE_PARENT_TYPES},
        namespaces=FileKeyValueStore(config.namespace_path),
        notifier=EventBus() if config.notify_on_restore else None,
    )

    return TrashServices(
        store=store,
        router=router,
        admin=TrashAdmin(store),
        display=default_display_resolver(),
    )


def _record_row(record: TrashRecord, display: DisplayInfoResolver) -> Dict[str, Any]:
    item = display.resolve(record)
    return {
        "trash_id": record.id,
        "type": record.original_type,
        "label": item.label,
        "name": item.display_name,
        "context": item.context_name,
        "original_id": record.original_id,
        "deleted_at": record.deleted_at.isoformat(),
        "deleted_by": record.deleted_by,
    }


@click.group(invoke_without_command=True)
@click.version_option(version=__version__)
@click.option("--log-level", default=None, help="Override the configured log level")
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """Records Toolkit - trash and restore tools for business records."""
    logging.basicConfig(
        level=(log_level or get_config().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        console.print(
            Panel.fit(
                f"[bold blue]Records Toolkit[/bold blue] v{__version__}\n"
                "[dim]Trash and restore tools for business records[/dim]\n\n"
                "Use [bold]records --help[/bold] to see available commands.",
                border_style="blue",
            )
        )


@cli.group()
def config() -> None:
    """Show toolkit configuration."""
    pass


@config.command("show")
@click.option("--format", type=click.Choice(["table", "json", "yaml"]), default="table")
def config_show(format: str) -> None:
    """Display current configuration."""
    config_dict = get_config().to_dict()

    if format == "json":
        console.print_json(data=config_dict)
    elif format == "yaml":
        import yaml  # type: ignore[import-untyped]

        console.print(yaml.dump(config_dict, default_flow_style=False))
    else:
        table = Table(title="Records Configuration", show_header=True)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")

        for setting, value in config_dict.items():
            if value is None:
                value = "[dim]Not configured[/dim]"
            elif isinstance(value, bool):
                value = "✓" if value else "✗"
            table.add_row(setting, str(value))

        console.print(table)


@cli.group()
def trash() -> None:
    """Inspect, restore and purge trashed records."""
    pass


@trash.command("list")
@click.option("--type", "types", multiple=True, help="Only show these type tags")
@click.option("--search", help="Case-insensitive text to match")
@click.option("--format", type=click.Choice(["table", "json"]), default="table")
def trash_list(types: List[str], search: Optional[str], format: str) -> None:
    """List trashed records, newest first."""

    async def _list() -> List[Dict[str, Any]]:
        services = await build_services()
        records = await services.store.list_all(types=types or None, search=search)
        return [_record_row(record, services.display) for record in records]

    try:
        rows = asyncio.run(_list())
    except TrashError as e:
        console.print(f"[red]Error listing trash: {e}[/red]")
        sys.exit(1)

    if not rows:
        console.print("[yellow]Trash is empty[/yellow]")
        return

    if format == "json":
        console.print_json(data=rows)
        return

    table = Table(title=f"Trash ({len(rows)} records)")
    table.add_column("Trash ID", style="cyan")
    table.add_column("Type", style="yellow")
    table.add_column("Name", style="green")
    table.add_column("Context", style="blue")
    table.add_column("Deleted", style="magenta")

    for row in rows:
        table.add_row(
            row["trash_id"],
            row["label"],
            row["name"],
            row["context"] or "",
            row["deleted_at"][:19].replace("T", " "),
        )

    console.print(table)


@trash.command("show")
@click.argument("trash_id")
def trash_show(trash_id: str) -> None:
    """Show a single trashed record."""

    async def _show() -> Dict[str, Any]:
        services = await build_services()
        record = await services.store.get(trash_id)
        item = services.display.resolve(record)
        return {
            **_record_row(record, services.display),
            "fields": item.fields,
            "payload": record.payload,
        }

    try:
        data = asyncio.run(_show())
    except TrashError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    console.print_json(data=data)


@trash.command("restore")
@click.argument("trash_id")
def trash_restore(trash_id: str) -> None:
    """Restore a trashed record to its home location."""

    async def _restore() -> Any:
        services = await build_services()
        return await services.router.restore(trash_id)

    try:
        result = asyncio.run(_restore())
    except TrashError as e:
        console.print(f"[red]Restore failed: {e}[/red]")
        sys.exit(1)

    console.print(
        f"[green]✓ Restored {result.original_type} to {result.location} "
        f"as {result.restored_id}[/green]"
    )


@trash.command("delete")
@click.argument("trash_id")
def trash_delete(trash_id: str) -> None:
    """Permanently delete a trashed record."""

    async def _delete() -> bool:
        services = await build_services()
        return await services.store.permanently_delete(trash_id)

    try:
        asyncio.run(_delete())
    except TrashError as e:
        console.print(f"[red]Delete failed: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓ Trash record {trash_id} deleted[/green]")


@trash.command("empty")
@click.option("--yes", is_flag=True, help="Confirm without prompting")
def trash_empty(yes: bool) -> None:
    """Permanently delete every trashed record."""
    if not yes and not click.confirm("Permanently delete every trash record?"):
        console.print("[yellow]Aborted[/yellow]")
        return

    async def _empty() -> int:
        services = await build_services()
        return await services.admin.purge_all()

    try:
        count = asyncio.run(_empty())
    except TrashError as e:
        console.print(f"[red]Purge failed: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓ Purged {count} trash records[/green]")


@trash.command("duplicates")
def trash_duplicates() -> None:
    """Report trash records that share a dedup key."""

    async def _duplicates() -> Dict[tuple, List[TrashRecord]]:
        services = await build_services()
        return await services.admin.find_duplicates()

    try:
        groups = asyncio.run(_duplicates())
    except TrashError as e:
        console.print(f"[red]Error reading duplicates: {e}[/red]")
        sys.exit(1)

    if not groups:
        console.print("[green]✓ No duplicate trash records[/green]")
        return

    table = Table(title=f"Duplicate groups ({len(groups)})")
    table.add_column("Type", style="yellow")
    table.add_column("Original ID", style="cyan")
    table.add_column("Trash IDs", style="magenta")

    for (original_type, original_id, _), records in groups.items():
        table.add_row(
            original_type, original_id, ", ".join(str(r.id) for r in records)
        )

    console.print(table)


@trash.command("export")
@click.option("--output", type=click.Path(), required=True, help="Output file path")
@click.option("--format", type=click.Choice(["json", "csv", "excel"]), default="csv")
def trash_export(output: str, format: str) -> None:
    """Export the trash listing."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Exporting trash...", total=None)

        async def _rows() -> List[Dict[str, Any]]:
            services = await build_services()
            records = await services.store.list_all()
            return [_record_row(record, services.display) for record in records]

        try:
            rows = asyncio.run(_rows())
        except TrashError as e:
            progress.stop()
            console.print(f"[red]Error exporting trash: {e}[/red]")
            sys.exit(1)

        progress.update(task, description=f"Found {len(rows)} records, exporting...")

        df = pd.DataFrame(rows)
        output_path = Path(output)
        if format == "json":
            df.to_json(output_path, orient="records", indent=2)
        elif format == "excel":
            df.to_excel(output_path, index=False, engine="openpyxl")
        else:  # csv
            df.to_csv(output_path, index=False)

        progress.stop()
        console.print(
            f"[green]✓ Exported {len(rows)} trash records to {output_path}[/green]"
        )


@cli.command()
def doctor() -> None:
    """Run diagnostic checks on the toolkit installation."""
    console.print("[bold]Running Records Toolkit diagnostics...[/bold]\n")

    checks_passed = 0
    checks_failed = 0

    config = get_config()
    console.print("[green]✓[/green] Configuration loaded successfully")
    checks_passed += 1

    try:
        services = asyncio.run(build_services(config))
        console.print(
            f"[green]✓[/green] Trash storage initialized "
            f"({TrashBackend(config.trash_storage_backend).value})"
        )
        console.print(
            f"[green]✓[/green] Restore strategies registered: "
            f"{len(services.router.registered_types)}"
        )
        checks_passed += 2
    except Exception as e:
        console.print(f"[red]✗[/red] Trash storage error: {e}")
        checks_failed += 1

    namespace_dir = Path(config.namespace_path)
    if namespace_dir.exists() and namespace_dir.is_dir():
        console.print(f"[green]✓[/green] Namespace directory exists: {namespace_dir}")
        checks_passed += 1
    else:
        console.print(
            f"[yellow]⚠[/yellow] Namespace directory will be created on first "
            f"restore: {namespace_dir}"
        )

    console.print("\n[bold]Summary:[/bold]")
    console.print(f"  Checks passed: [green]{checks_passed}[/green]")
    console.print(f"  Checks failed: [red]{checks_failed}[/red]")

    if checks_failed == 0:
        console.print("\n[green]✓ All systems operational[/green]")
    else:
        console.print(
            "\n[yellow]⚠ Some issues detected - review output above[/yellow]"
        )
        sys.exit(1)


if __name__ == "__main__":
    cli()
