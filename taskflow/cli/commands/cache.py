"""Catalog cache commands."""

import click
from rich.console import Console
from rich.table import Table

from ...client import TaskflowClient
from ..app import run_with_client

console = Console()


@click.group()
def cache() -> None:
    """Inspect or clear the catalog cache.

    Examples:

        taskflow cache stats --warm

        taskflow cache clear
    """


@cache.command("stats")
@click.option("--warm", is_flag=True, help="Load the catalog documents first")
@click.pass_context
def cache_stats(ctx: click.Context, warm: bool) -> None:
    """Show cache entry counts and TTL."""
    async def _stats(client: TaskflowClient) -> dict:
        if warm:
            await client.gateway.get_categories()
            await client.gateway.get_task_templates()
            await client.gateway.get_statistics()
        return client.gateway.cache_stats()

    stats = run_with_client(ctx, _stats)

    table = Table(title="Catalog Cache")
    table.add_column("Metric", style="cyan")
    table.add_column("Value")
    for key, value in stats.items():
        table.add_row(key, str(value))
    console.print(table)


@cache.command("clear")
@click.pass_context
def cache_clear(ctx: click.Context) -> None:
    """Drop every cached catalog document."""
    async def _clear(client: TaskflowClient) -> int:
        removed = client.gateway.cache_stats()["totalEntries"]
        client.gateway.clear_cache()
        return removed

    removed = run_with_client(ctx, _clear)
    console.print(f"[green]✓ Cache cleared[/green] ({removed} entries)")
