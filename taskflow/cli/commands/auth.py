"""Authentication commands."""

import click
from rich.console import Console

from ...client import TaskflowClient
from ...types import Result, Session
from ..app import fail, run_with_client

console = Console()


def _describe(session: Session) -> str:
    mode = "[green]remote[/green]" if session.is_remote else "[yellow]local only[/yellow]"
    return f"{session.user.name} <{session.user.email}> ({mode})"


@click.group()
def auth() -> None:
    """Sign in, sign out and inspect the current session.

    Examples:

        taskflow auth register --name Ana --email ana@example.com

        taskflow auth login --email ana@example.com

        taskflow auth whoami
    """


@auth.command("register")
@click.option("--name", prompt=True, help="Display name")
@click.option("--email", prompt=True, help="Email address")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Password")
@click.pass_context
def register(ctx: click.Context, name: str, email: str, password: str) -> None:
    """Create an account and sign in."""
    async def _register(client: TaskflowClient) -> Result:
        return await client.auth.register(name, email, password, password)

    result = run_with_client(ctx, _register)
    if not result:
        fail(result.error)
    console.print(f"[green]✓ Registered[/green] {_describe(result.data)}")


@auth.command("login")
@click.option("--email", prompt=True, help="Email address")
@click.option("--password", prompt=True, hide_input=True, help="Password")
@click.pass_context
def login(ctx: click.Context, email: str, password: str) -> None:
    """Sign in with email and password."""
    async def _login(client: TaskflowClient) -> Result:
        return await client.auth.login(email, password)

    result = run_with_client(ctx, _login)
    if not result:
        fail(result.error)
    console.print(f"[green]✓ Signed in[/green] {_describe(result.data)}")


@auth.command("logout")
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Sign out and forget the saved session."""
    async def _logout(client: TaskflowClient) -> Result:
        return await client.auth.logout()

    run_with_client(ctx, _logout)
    console.print("[green]✓ Signed out[/green]")


@auth.command("whoami")
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the signed-in user."""
    async def _whoami(client: TaskflowClient):
        result = await client.auth.current_user_info()
        return result, client.auth.session, client.auth.is_token_expiring_soon()

    result, session, expiring = run_with_client(ctx, _whoami)
    if not result or session is None:
        console.print("[dim]Not signed in[/dim]")
        return
    console.print(_describe(session))
    if expiring:
        console.print("[yellow]Token expires within the hour[/yellow]")
