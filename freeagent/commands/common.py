"""Helpers shared by the CLI commands."""

import json
import sqlite3
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape

from freeagent.api.client import FreeAgentClient
from freeagent.api.errors import ConfigError, FreeAgentError, ValidationError
from freeagent.api.resources import FreeAgent
from freeagent.config import resolve_settings
from freeagent.store.tokens import load_tokens, save_tokens

console = Console()


def open_api(profile: str) -> FreeAgent:
    """Build an API handle for a profile, persisting refreshed tokens.

    Raises:
        ConfigError: If the profile is not configured.
    """
    settings = resolve_settings(profile)
    client = FreeAgentClient(
        settings,
        tokens=load_tokens(profile),
        on_token_refresh=lambda tokens: save_tokens(profile, tokens),
    )
    return FreeAgent(client)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print API, configuration and token store errors and exit with status 1."""
    try:
        yield
    except ValidationError as e:
        console.print("[red]The request was rejected:[/red]", style="bold")
        for message in e.messages or [str(e)]:
            console.print(f"  • {escape(message)}")
        sys.exit(1)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]", style="bold")
        sys.exit(1)
    except FreeAgentError as e:
        console.print(f"[red]{escape(str(e))}[/red]", style="bold")
        sys.exit(1)
    except sqlite3.Error as e:
        console.print(f"[red]Database error: {escape(str(e))}[/red]", style="bold")
        sys.exit(1)
    except ValueError as e:
        console.print(f"[red]{escape(str(e))}[/red]", style="bold")
        sys.exit(1)


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(data: Any) -> str:
    return json.dumps(data, default=_json_default, indent=2)


def print_json(data: Any) -> None:
    console.print_json(to_json(data))


def read_payload(path: str) -> dict[str, Any]:
    """Read a JSON object from a file, or from stdin when path is '-'.

    Raises:
        ValueError: If the file is not a JSON object.
    """
    try:
        if path == "-":
            data = json.load(sys.stdin, parse_float=Decimal)
        else:
            with open(Path(path).expanduser()) as f:
                data = json.load(f, parse_float=Decimal)
    except OSError as e:
        raise ValueError(f"Could not read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")
    return data


def parse_filters(filters: list[str] | None) -> dict[str, str]:
    """Parse repeated ``key=value`` options.

    Raises:
        ValueError: If an option has no '='.
    """
    result: dict[str, str] = {}
    for item in filters or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Filter '{item}' must look like key=value")
        result[key.strip()] = value.strip()
    return result


def format_amount(value: Any) -> str:
    """Format a monetary value for display, red when negative."""
    if value is None:
        return "[dim]-[/dim]"
    amount = Decimal(str(value))
    if amount < 0:
        return f"[red]-{abs(amount):,.2f}[/red]"
    return f"{amount:,.2f}"
