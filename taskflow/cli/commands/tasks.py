"""Task commands."""

from typing import Any, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from ...client import TaskflowClient
from ...types import Backend, Result, Task
from ..app import fail, run_with_client

console = Console()

PRIORITIES = ["low", "medium", "high", "urgent"]
STATUSES = ["pending", "in_progress", "completed", "cancelled"]
SORT_KEYS = ["due_date", "priority", "category", "created_at"]

PRIORITY_STYLES = {"low": "dim", "medium": "white", "high": "yellow", "urgent": "red"}


def _source_note(backend: Optional[Backend]) -> str:
    return " [yellow](local)[/yellow]" if backend is Backend.LOCAL else ""


def _render(tasks: List[Task], source: Optional[Backend]) -> None:
    if not tasks:
        console.print(f"[dim]No tasks[/dim]{_source_note(source)}")
        return

    table = Table(title=f"Tasks{_source_note(source)}")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Category")
    table.add_column("Priority")
    table.add_column("Status")
    table.add_column("Due")
    for task in tasks:
        style = PRIORITY_STYLES[task.priority.value]
        done = "[green]✓[/green] " if task.completed else ""
        table.add_row(
            task.id,
            f"{done}{task.title}",
            task.category,
            f"[{style}]{task.priority.value}[/{style}]",
            task.status.value,
            task.due_date or "-",
        )
    console.print(table)


@click.group()
def tasks() -> None:
    """List and change tasks.

    Tasks go to the TaskFlow service while signed in, and to the local
    store otherwise or when the service is unavailable.

    Examples:

        taskflow tasks list --status pending --sort priority

        taskflow tasks add "Write report" -p high --due 2026-11-01

        taskflow tasks done 3f2a
    """


@tasks.command("list")
@click.option("--search", "-s", default="", help="Match title or description")
@click.option("--status", type=click.Choice(STATUSES), help="Only this status")
@click.option("--priority", "-p", type=click.Choice(PRIORITIES), help="Only this priority")
@click.option("--category", help="Only this category")
@click.option("--sort", "sort_by", type=click.Choice(SORT_KEYS), default="due_date", show_default=True)
@click.option("--summary", is_flag=True, help="Also print counts")
@click.pass_context
def tasks_list(
    ctx: click.Context,
    search: str,
    status: Optional[str],
    priority: Optional[str],
    category: Optional[str],
    sort_by: str,
    summary: bool,
) -> None:
    """List tasks."""
    async def _list(client: TaskflowClient) -> Tuple[Result, List[Task], Optional[Backend], Dict[str, Any]]:
        result = await client.tasks.list_tasks()
        shown = client.tasks.filter_tasks(
            search=search, status=status, priority=priority, category=category, sort_by=sort_by
        )
        return result, shown, client.tasks.source, client.tasks.summary()

    result, shown, source, counts = run_with_client(ctx, _list)
    if not result:
        fail(result.error)
    _render(shown, source)
    if summary:
        console.print(
            f"pending: {counts['pending']}  completed: {counts['completed']}  "
            f"overdue: [red]{counts['overdue']}[/red]"
        )


@tasks.command("add")
@click.argument("title")
@click.option("--description", "-d", default="", help="Longer description")
@click.option("--category", default="general", show_default=True)
@click.option("--priority", "-p", type=click.Choice(PRIORITIES), default="medium", show_default=True)
@click.option("--due", help="Due date (YYYY-MM-DD)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.pass_context
def tasks_add(
    ctx: click.Context,
    title: str,
    description: str,
    category: str,
    priority: str,
    due: Optional[str],
    tags: Tuple[str, ...],
) -> None:
    """Create a task."""
    data: Dict[str, Any] = {
        "title": title,
        "description": description,
        "category": category,
        "priority": priority,
        "tags": list(tags),
    }
    if due:
        data["dueDate"] = due

    async def _add(client: TaskflowClient):
        return await client.tasks.route_create(data)

    routed = run_with_client(ctx, _add)
    if not routed.result:
        fail(routed.result.error)
    console.print(f"[green]✓ Created[/green] {routed.result.data.id}{_source_note(routed.backend)}")


def _single(ctx: click.Context, operation, verb: str) -> None:
    async def _run(client: TaskflowClient) -> Tuple[Result, Optional[Backend]]:
        result = await operation(client)
        return result, client.tasks.source

    result, source = run_with_client(ctx, _run)
    if not result:
        fail(result.error)
    console.print(f"[green]✓ {verb}[/green]{_source_note(source)}")


@tasks.command("done")
@click.argument("task_id")
@click.pass_context
def tasks_done(ctx: click.Context, task_id: str) -> None:
    """Toggle a task between completed and pending."""
    _single(ctx, lambda client: client.tasks.toggle_task_status(task_id), f"Toggled {task_id}")


@tasks.command("edit")
@click.argument("task_id")
@click.option("--title", help="New title")
@click.option("--description", "-d", help="New description")
@click.option("--category", help="New category")
@click.option("--priority", "-p", type=click.Choice(PRIORITIES), help="New priority")
@click.option("--status", type=click.Choice(STATUSES), help="New status")
@click.option("--due", help="New due date (YYYY-MM-DD)")
@click.pass_context
def tasks_edit(ctx: click.Context, task_id: str, due: Optional[str], **fields: Optional[str]) -> None:
    """Change fields of a task."""
    changes: Dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
    if due is not None:
        changes["dueDate"] = due
    if not changes:
        fail("Nothing to change")
    _single(ctx, lambda client: client.tasks.update_task(task_id, changes), f"Updated {task_id}")


@tasks.command("rm")
@click.argument("task_id")
@click.pass_context
def tasks_rm(ctx: click.Context, task_id: str) -> None:
    """Delete a task."""
    _single(ctx, lambda client: client.tasks.delete_task(task_id), f"Deleted {task_id}")
