"""CLI entry point for freeagent."""

import typer

from freeagent.commands.auth import init_command, login_command, logout_command, profiles_command
from freeagent.commands.reports import (
    balance_sheet_command,
    cashflow_command,
    profit_and_loss_command,
    trial_balance_command,
)
from freeagent.commands.resources import (
    action_command,
    create_command,
    delete_command,
    get_command,
    list_command,
    resources_command,
    update_command,
)
from freeagent.config import DEFAULT_PROFILE
from freeagent.log import setup_logging

app = typer.Typer(
    name="freeagent",
    help="Work with your FreeAgent accounts from the command line",
    add_completion=False,
)


@app.callback()
def main(
    ctx: typer.Context,
    profile: str = typer.Option(DEFAULT_PROFILE, "--profile", "-p", help="Config profile to use"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log HTTP requests and retries"),
) -> None:
    """Work with your FreeAgent accounts from the command line."""
    setup_logging(verbose)
    ctx.obj = {"profile": profile}


@app.command(name="init")
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
) -> None:
    """Create your config file and token database."""
    init_command(force)


@app.command()
def login(
    ctx: typer.Context,
    pkce: bool = typer.Option(True, "--pkce/--no-pkce", help="Use PKCE for the authorization code flow"),
) -> None:
    """Authorize this tool against your FreeAgent account."""
    login_command(ctx.obj["profile"], pkce)


@app.command()
def logout(ctx: typer.Context) -> None:
    """Forget the stored tokens for your profile."""
    logout_command(ctx.obj["profile"])


@app.command()
def profiles() -> None:
    """List profiles that are logged in."""
    profiles_command()


@app.command()
def resources() -> None:
    """List the resources you can work with."""
    resources_command()


@app.command(name="list")
def list_records(
    ctx: typer.Context,
    resource: str,
    view: str = typer.Option(None, "--view", help="Server-side view, e.g. open or overdue"),
    per_page: int = typer.Option(None, "--per-page", help="Page size (1-100)"),
    limit: int = typer.Option(None, "--limit", "-n", help="Maximum records to fetch"),
    filters: list[str] = typer.Option(None, "--filter", "-f", help="Extra query parameter as key=value"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
    csv_path: str = typer.Option(None, "--csv", help="Write records to a CSV file"),
) -> None:
    """List records in a resource."""
    list_command(ctx.obj["profile"], resource, view, per_page, limit, filters, as_json, csv_path)


@app.command()
def get(ctx: typer.Context, resource: str, id: str) -> None:
    """Show one record."""
    get_command(ctx.obj["profile"], resource, id)


@app.command()
def create(
    ctx: typer.Context,
    resource: str,
    data: str = typer.Option(..., "--data", "-d", help="JSON file with the attributes ('-' for stdin)"),
) -> None:
    """Create a record from a JSON file."""
    create_command(ctx.obj["profile"], resource, data)


@app.command()
def update(
    ctx: typer.Context,
    resource: str,
    id: str,
    data: str = typer.Option(..., "--data", "-d", help="JSON file with the attributes ('-' for stdin)"),
) -> None:
    """Update a record from a JSON file."""
    update_command(ctx.obj["profile"], resource, id, data)


@app.command()
def delete(
    ctx: typer.Context,
    resource: str,
    id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a record."""
    delete_command(ctx.obj["profile"], resource, id, yes)


@app.command()
def action(ctx: typer.Context, resource: str, id: str, name: str) -> None:
    """Run an action such as mark_as_sent on a record."""
    action_command(ctx.obj["profile"], resource, id, name)


@app.command(name="trial-balance")
def trial_balance(
    ctx: typer.Context,
    from_date: str = typer.Option(None, "--from", help="Period start (YYYY-MM-DD)"),
    to_date: str = typer.Option(None, "--to", help="Period end (YYYY-MM-DD)"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show the trial balance for a period (default: this month)."""
    trial_balance_command(ctx.obj["profile"], from_date, to_date, as_json)


@app.command(name="balance-sheet")
def balance_sheet(
    ctx: typer.Context,
    as_at: str = typer.Option(None, "--date", help="Balance sheet date (YYYY-MM-DD)"),
    check: bool = typer.Option(False, "--check", help="Verify the totals add up"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show your balance sheet."""
    balance_sheet_command(ctx.obj["profile"], as_at, check, as_json)


@app.command(name="profit-and-loss")
def profit_and_loss(
    ctx: typer.Context,
    from_date: str = typer.Option(None, "--from", help="Period start (YYYY-MM-DD)"),
    to_date: str = typer.Option(None, "--to", help="Period end (YYYY-MM-DD)"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show profit and loss for a period (default: this month)."""
    profit_and_loss_command(ctx.obj["profile"], from_date, to_date, as_json)


@app.command()
def cashflow(
    ctx: typer.Context,
    from_date: str = typer.Option(..., "--from", help="Period start (YYYY-MM-DD)"),
    to_date: str = typer.Option(..., "--to", help="Period end (YYYY-MM-DD)"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show incoming and outgoing cash by month."""
    cashflow_command(ctx.obj["profile"], from_date, to_date, as_json)


if __name__ == "__main__":
    app()
