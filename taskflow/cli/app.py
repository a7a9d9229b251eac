"""TaskFlow CLI application."""

import asyncio
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import click
from rich.console import Console

from .. import __version__
from ..client import TaskflowClient
from ..config import TaskflowConfig
from ..utils.logging import setup_logging

console = Console()


def find_config() -> str | None:
    """
    Find config file using standard priority order:

    1. TASKFLOW_CONFIG environment variable
    2. .taskflow.yaml in current directory (project config)
    3. ~/.config/taskflow/config.yaml (user config)

    Returns None if no config found.
    """
    # 1. Environment variable (highest priority)
    env_config = os.environ.get("TASKFLOW_CONFIG")
    if env_config:
        path = Path(env_config)
        if path.exists():
            return str(path)

    # 2. Project config in current directory
    project_config = Path.cwd() / ".taskflow.yaml"
    if project_config.exists():
        return str(project_config)

    # 3. User config in ~/.config/taskflow/
    user_config = Path.home() / ".config" / "taskflow" / "config.yaml"
    if user_config.exists():
        return str(user_config)

    return None


def load_config(config_path: Optional[str]) -> TaskflowConfig:
    if config_path:
        return TaskflowConfig.load(config_path)
    return TaskflowConfig()


def run_with_client(ctx: click.Context, action: Callable[[TaskflowClient], Awaitable[Any]]) -> Any:
    """Build a client for this invocation, run ``action`` with it and close it."""
    factory = ctx.obj.get("client_factory")
    if factory is None:
        config = load_config(ctx.obj.get("config"))
        if ctx.obj.get("verbose"):
            config.log_level = "DEBUG"
        if ctx.obj.get("verbose") or config.log_file:
            setup_logging(config)

        def factory() -> TaskflowClient:
            return TaskflowClient(config)

    async def _run() -> Any:
        async with factory() as client:
            return await action(client)

    return asyncio.run(_run())


def fail(message: str) -> None:
    """Print an error and exit non-zero."""
    console.print(f"[red]Error: {message}[/red]")
    raise SystemExit(1)


@click.group()
@click.version_option(version=__version__, prog_name="taskflow")
@click.option("--config", "-c", type=click.Path(exists=True), help="Config file path")
@click.option("--no-config", is_flag=True, help="Disable config auto-loading")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(ctx: click.Context, config: str, no_config: bool, verbose: bool) -> None:
    """TaskFlow — tasks on the TaskFlow service, with a local fallback.

    Config file locations (in priority order):

        1. -c/--config PATH (explicit)

        2. TASKFLOW_CONFIG env var

        3. .taskflow.yaml (project config)

        4. ~/.config/taskflow/config.yaml (user config)

    Examples:

        taskflow auth login --email ana@example.com

        taskflow tasks add "Write report" --priority high

        taskflow templates --search meeting
    """
    ctx.ensure_object(dict)

    # Determine config file
    if no_config:
        config = None
    elif config is None:
        config = find_config()
        if config and verbose:
            console.print(f"[dim]Using config: {config}[/dim]")

    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


# Import and register commands
from .commands import auth, cache, status, tasks, templates, version

cli.add_command(auth.auth)
cli.add_command(cache.cache)
cli.add_command(status.status)
cli.add_command(tasks.tasks)
cli.add_command(templates.templates)
cli.add_command(version.version)
