"""Status command."""

import click
from rich.console import Console
from rich.table import Table

from ...client import TaskflowClient
from ..app import run_with_client

console = Console()


@click.command()
@click.option("--offline", is_flag=True, help="Skip the connectivity check")
@click.pass_context
def status(ctx: click.Context, offline: bool) -> None:
    """Show session, cache, connectivity and metrics.

    Examples:

        taskflow status

        taskflow status --offline
    """
    async def _collect(client: TaskflowClient) -> dict:
        info = client.status()
        info["online"] = None if offline else await client.gateway.check_connectivity()
        info["api"] = client.config.base_url
        return info

    info = run_with_client(ctx, _collect)

    table = Table(title="TaskFlow Status")
    table.add_column("Item", style="cyan")
    table.add_column("Value")

    table.add_row("environment", info["environment"])
    table.add_row("api", info["api"])
    if info["online"] is None:
        table.add_row("service", "[dim]not checked[/dim]")
    elif info["online"]:
        table.add_row("service", "[green]✓ reachable[/green]")
    else:
        table.add_row("service", "[red]✗ unreachable[/red]")

    if info["authenticated"]:
        table.add_row("session", f"[green]remote[/green] ({info['user']})")
    elif info["user"]:
        table.add_row("session", f"[yellow]local[/yellow] ({info['user']})")
    else:
        table.add_row("session", "[dim]signed out[/dim]")

    cache = info["cache"]
    table.add_row("cache", f"{cache['validEntries']} valid / {cache['totalEntries']} total")

    counters = info["metrics"].get("counters", {})
    for name in sorted(counters):
        table.add_row(name, str(counters[name]))

    console.print(table)
