"""Setup and authentication commands."""

import sqlite3
import sys
from urllib.parse import parse_qs, urlsplit

import typer
from rich.table import Table

from freeagent.api.auth import OAuthClient, generate_pkce_pair, generate_state
from freeagent.commands.common import console, handle_errors
from freeagent.config import create_default_config, get_config_path, resolve_settings
from freeagent.store.schema import get_db_path, init_database
from freeagent.store.tokens import delete_tokens, list_profiles, save_tokens


def init_command(force: bool = False) -> None:
    """Create the config file and token database."""
    db_path = get_db_path()
    config_path = get_config_path()

    if config_path.exists() and not force:
        console.print(f"[red]Config already exists: {config_path}[/red]", style="bold")
        console.print("\n[yellow]Use 'freeagent init --force' to overwrite[/yellow]")
        sys.exit(1)

    try:
        console.print(f"[cyan]Initializing token database at {db_path}...[/cyan]")
        init_database(db_path)
        console.print("[green]✓[/green] Database initialized")

        console.print(f"[cyan]Creating config file at {config_path}...[/cyan]")
        create_default_config(config_path)
        console.print("[green]✓[/green] Config file created (permissions: 600)")
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)
    except OSError as e:
        console.print(f"[red]Filesystem error: {e}[/red]", style="bold")
        sys.exit(1)

    console.print("\n[green]Initialization complete![/green]", style="bold")
    console.print("[dim]Add your client_id and client_secrets, then run 'freeagent login'.[/dim]")


def extract_code(answer: str, expected_state: str) -> str:
    """Accept either a bare code or the full redirect URL pasted by the user.

    Raises:
        ValueError: If a pasted URL has no code or a mismatched state.
    """
    answer = answer.strip()
    if "code=" not in answer:
        return answer

    query = parse_qs(urlsplit(answer).query or answer)
    codes = query.get("code")
    if not codes:
        raise ValueError("No authorization code found in the pasted URL")
    states = query.get("state")
    if states and states[0] != expected_state:
        raise ValueError("State mismatch; start the login again")
    return codes[0]


def login_command(profile: str, use_pkce: bool = True) -> None:
    """Run the interactive authorization code flow and store the tokens."""
    with handle_errors():
        settings = resolve_settings(profile)
        oauth = OAuthClient(settings.client_id, settings.client_secrets, sandbox=settings.sandbox)

        verifier, challenge = generate_pkce_pair() if use_pkce else (None, None)
        state = generate_state()
        url = oauth.authorization_url(settings.redirect_uri, state, challenge)

        console.print("[cyan]Open this URL and approve access:[/cyan]")
        console.print(url, soft_wrap=True)
        answer = typer.prompt("\nPaste the authorization code (or the full redirect URL)")

        code = extract_code(answer, state)
        tokens = oauth.exchange_code(code, settings.redirect_uri, verifier)

        try:
            save_tokens(profile, tokens)
        except sqlite3.Error as e:
            console.print(f"[red]Database error: {e}[/red]", style="bold")
            sys.exit(1)

    console.print(f"[green]✓[/green] Logged in as profile '{profile}'")
    console.print(f"[dim]Access token expires at {tokens.expires_at:%Y-%m-%d %H:%M} UTC[/dim]")


def logout_command(profile: str) -> None:
    """Forget stored tokens for a profile."""
    try:
        removed = delete_tokens(profile)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)

    if removed:
        console.print(f"[green]✓[/green] Logged out of profile '{profile}'")
    else:
        console.print(f"[yellow]Profile '{profile}' was not logged in[/yellow]")


def profiles_command() -> None:
    """List profiles with stored tokens."""
    try:
        profiles = list_profiles()
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {e}[/red]", style="bold")
        sys.exit(1)

    if not profiles:
        console.print("[yellow]No profiles logged in[/yellow]")
        return

    table = Table(title="Logged-in profiles")
    table.add_column("Profile", style="cyan")
    table.add_column("Token expires", style="white")
    table.add_column("Updated", style="dim")
    for row in profiles:
        table.add_row(row["profile"], row["expires_at"], row["updated_at"])
    console.print(table)
