"""Task template catalog command."""

from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.table import Table

from ...client import TaskflowClient
from ..app import fail, run_with_client

console = Console()


@click.command()
@click.option("--category", help="Only templates in this category")
@click.option("--priority", type=click.Choice(["low", "medium", "high", "urgent"]), help="Only this priority")
@click.option("--search", "-s", help="Match name, description or tags")
@click.pass_context
def templates(ctx: click.Context, category: Optional[str], priority: Optional[str], search: Optional[str]) -> None:
    """List task templates from the service catalog.

    Examples:

        taskflow templates

        taskflow templates --category work --priority high

        taskflow templates -s meeting
    """
    async def _load(client: TaskflowClient) -> Optional[List[Dict[str, Any]]]:
        catalog = await client.gateway.get_task_templates()
        if catalog is None:
            return None
        found = await client.gateway.search_templates(search) if search else catalog["templates"]
        if category:
            allowed = await client.gateway.get_templates_by_category(category)
            found = [t for t in found if t in allowed]
        if priority:
            allowed = await client.gateway.get_templates_by_priority(priority)
            found = [t for t in found if t in allowed]
        return found

    found = run_with_client(ctx, _load)
    if found is None:
        fail("Task templates are unavailable")
    if not found:
        console.print("[dim]No matching templates[/dim]")
        return

    table = Table(title="Task Templates")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Priority")
    table.add_column("Tags")
    for template in found:
        table.add_row(
            str(template.get("name", "")),
            str(template.get("category", "")),
            str(template.get("priority", "")),
            ", ".join(str(t) for t in template.get("tags") or []),
        )
    console.print(table)
