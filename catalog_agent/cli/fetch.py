"""
Fetch CLI Commands
==================

CLI commands for searching configured sources and inspecting the
source registry.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from catalog_agent.core.enums import CollectionType, FetchKey, MessageLevel
from catalog_agent.fetch.adapters import get_adapter_info, list_adapters
from catalog_agent.fetch.manager import FetchManager
from catalog_agent.fetch.messages import FetchMessage
from catalog_agent.fetch.registry import get_default_registry
from catalog_agent.fetch.request import FetchRequest, FetchResult

console = Console()
fetch_app = typer.Typer(help="Metadata fetch commands")
sources_app = typer.Typer(help="Inspect configured sources")

fetch_app.add_typer(sources_app, name="sources")

_LEVEL_STYLES = {
    MessageLevel.INFO: "dim",
    MessageLevel.WARNING: "yellow",
    MessageLevel.ERROR: "red",
}


def _print_message(message: FetchMessage) -> None:
    style = _LEVEL_STYLES[message.level]
    rprint(f"[{style}]{message}[/{style}]")


async def _run_search(
    manager: FetchManager,
    request: FetchRequest,
    timeout: float | None,
    resolve: bool,
) -> list[FetchResult]:
    results = []
    async for result in manager.execute(request, timeout=timeout):
        if resolve:
            full = await manager.fetch_entry(result.uid, timeout=timeout)
            if full is not None:
                result = FetchResult(result.uid, result.request, result.source, full)
        results.append(result)
    return results


@fetch_app.command("search")
def search(
    value: str = typer.Option(..., "--value", "-v", help="Value to search for"),
    key: FetchKey = typer.Option(FetchKey.TITLE, "--key", "-k", help="Search key"),
    collection_type: CollectionType = typer.Option(..., "--type", "-t", help="Collection type"),
    source: Optional[list[str]] = typer.Option(None, "--source", "-s", help="Only search these sources"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Cancel sources still running after this many seconds"),
    resolve: bool = typer.Option(False, "--resolve", "-r", help="Fetch the full record for every result"),
) -> None:
    """
    Search configured sources.

    Examples:
        catalog-agent fetch search --key title --value "Blade Runner" --type video
        catalog-agent fetch search -k keyword -v zelda -t game -s igdb --resolve
    """
    registry = get_default_registry()
    manager = FetchManager.from_registry(registry, on_message=_print_message)

    if source:
        unknown = [name for name in source if manager.get_adapter(name) is None]
        if unknown:
            rprint(f"[red]Error:[/red] Unknown or disabled source(s): {', '.join(unknown)}")
            raise typer.Exit(1)
        manager.retain_adapters(source)

    request = FetchRequest(key, value, collection_type)
    if not manager.eligible_adapters(request):
        rprint(f"[yellow]No enabled source supports {key.value} searches for {collection_type.value}[/yellow]")
        raise typer.Exit(1)

    with console.status(f"[bold blue]Searching for {value}...[/bold blue]"):
        results = asyncio.run(_run_search(manager, request, timeout, resolve))

    if not results:
        rprint("[yellow]No results[/yellow]")
        return

    table = Table(title=f"Results for {request}")
    table.add_column("#", justify="right")
    table.add_column("Source")
    table.add_column("Title", style="bold")
    table.add_column("Details")

    for result in results:
        table.add_row(str(result.uid), result.source, result.title, result.description)

    console.print(table)


@fetch_app.command("adapters")
def list_fetch_adapters() -> None:
    """
    List the adapter types sources can use.

    Examples:
        catalog-agent fetch adapters
    """
    table = Table(title="Adapters")
    table.add_column("Adapter", style="bold")
    table.add_column("Source")
    table.add_column("Keys")
    table.add_column("Types")
    table.add_column("Version", justify="right")

    for adapter_name in list_adapters():
        info = get_adapter_info(adapter_name)
        table.add_row(adapter_name, info["title"], info["keys"], info["types"], info["version"])

    console.print(table)


def _enabled_label(enabled: bool) -> str:
    return "[green]enabled[/green]" if enabled else "[yellow]disabled[/yellow]"


@sources_app.command("list")
def list_sources(
    all_sources: bool = typer.Option(False, "--all", "-a", help="Include disabled sources"),
) -> None:
    """
    List configured sources.

    Examples:
        catalog-agent fetch sources list
        catalog-agent fetch sources list --all
    """
    registry = get_default_registry()
    sources = registry.list_sources() if all_sources else registry.list_enabled_sources()

    if not sources:
        rprint("[yellow]No sources configured[/yellow]")
        rprint("Set SOURCES_CONFIG_PATH or edit config/sources.yaml")
        return

    table = Table(title="Sources")
    table.add_column("Source", style="bold")
    table.add_column("Adapter")
    table.add_column("State")
    table.add_column("Req/s", justify="right")
    table.add_column("Optional Fields")

    for source in sources:
        table.add_row(
            source.name,
            source.adapter,
            _enabled_label(source.enabled),
            f"{source.rate_limit.requests_per_second:g}",
            ", ".join(source.optional_fields) or "-",
        )

    console.print(table)


@sources_app.command("show")
def show_source(
    name: str = typer.Argument(..., help="Source name from sources.yaml"),
) -> None:
    """
    Show one source's configuration. Credentials are shown as set or empty.

    Examples:
        catalog-agent fetch sources show igdb
    """
    source = get_default_registry().get_source(name)
    if source is None:
        rprint(f"[red]Error:[/red] Source '{name}' not found")
        raise typer.Exit(1)

    table = Table(title=f"Source: {source.name}", show_header=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("State", _enabled_label(source.enabled))
    table.add_row("Adapter", source.adapter)
    if source.description:
        table.add_row("Description", source.description)
    table.add_row(
        "Rate limit",
        f"{source.rate_limit.requests_per_second:g}/s, burst {source.rate_limit.burst_limit}",
    )
    if source.optional_fields:
        table.add_row("Optional fields", ", ".join(source.optional_fields))
    for config_key, config_value in source.custom_config.items():
        table.add_row(config_key, "[green]set[/green]" if config_value else "[yellow]empty[/yellow]")

    info = get_adapter_info(source.adapter)
    if info is None:
        table.add_row("Class", "[red]unknown adapter[/red]")
    else:
        table.add_row("Class", f"{info['class']} {info['version']}")
        table.add_row("Keys", info["keys"])

    console.print(table)
