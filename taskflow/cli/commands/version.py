"""Version command."""

import click
from rich.console import Console

from ... import __version__

console = Console()


@click.command()
def version() -> None:
    """Show TaskFlow version.

    Examples:

        taskflow version
    """
    console.print(f"[bold]TaskFlow[/bold] v{__version__}")
