#!/usr/bin/env python3
"""Generate CLI reference documentation from the typer app."""

import inspect
import sys
from pathlib import Path
from typing import Any

# Add parent directory to path to import freeagent
sys.path.insert(0, str(Path(__file__).parent.parent))

import typer

from freeagent.cli import app


def is_option(default: Any) -> bool:
    """typer.Option and typer.Argument defaults carry help text."""
    return hasattr(default, "help")


def format_option(param_name: str, option: Any) -> str:
    """Format an option with its flags, help text and default."""
    flags = list(getattr(option, "param_decls", None) or []) or [f"--{param_name.replace('_', '-')}"]
    line = "- " + ", ".join(f"`{flag}`" for flag in flags)

    if option.help:
        line += f": {option.help}"

    default = getattr(option, "default", None)
    if default is ...:
        line += " (required)"
    elif default not in (None, False):
        line += f" (default: {default})"

    return line


def user_parameters(callback: Any) -> list[inspect.Parameter]:
    """Parameters the user types, without the injected typer.Context."""
    return [p for p in inspect.signature(callback).parameters.values() if p.annotation is not typer.Context]


def generate_command_doc(command_name: str, callback: Any) -> str:
    """Generate documentation for a single command."""
    params = user_parameters(callback)
    arguments = [p.name.upper() for p in params if p.default is inspect.Parameter.empty]
    options = [p for p in params if is_option(p.default)]

    usage = " ".join(["uv run freeagent", command_name, *arguments, "[OPTIONS]" if options else ""]).strip()
    lines = [
        f"### {command_name}",
        "",
        (callback.__doc__ or "No description available.").strip(),
        "",
        "```bash",
        usage,
        "```",
        "",
    ]

    if arguments:
        lines += ["**Arguments:**", ""]
        lines += [f"- `{arg}` (required)" for arg in arguments]
        lines.append("")

    if options:
        lines += ["**Options:**", ""]
        lines += [format_option(p.name, p.default) for p in options]
        lines.append("")

    return "\n".join(lines)


def generate_global_options() -> list[str]:
    """Document the options accepted before the command name."""
    callback = app.registered_callback.callback if app.registered_callback else None
    lines = ["| Option | Description |", "|--------|-------------|"]
    if callback is not None:
        for param in user_parameters(callback):
            if is_option(param.default):
                flags = ", ".join(f"`{flag}`" for flag in param.default.param_decls)
                lines.append(f"| {flags} | {param.default.help} |")
    lines.append("| `--help` | Show help message and exit |")
    return lines


def generate_cli_reference() -> str:
    """Generate complete CLI reference documentation."""
    lines = [
        "---",
        "tags: [reference]",
        "---",
        "",
        "# CLI Commands Reference",
        "",
        "Complete reference for all freeagent CLI commands and options.",
        "",
        "## Usage",
        "",
        "```bash",
        "uv run freeagent [GLOBAL OPTIONS] COMMAND [ARGS] [OPTIONS]",
        "```",
        "",
        "## Global Options",
        "",
        *generate_global_options(),
        "",
        "## Commands",
        "",
    ]

    commands = sorted(
        app.registered_commands,
        key=lambda c: c.name or (c.callback.__name__ if c.callback else ""),
    )
    for command in commands:
        if command.callback is None:
            continue
        lines.append(generate_command_doc(command.name or command.callback.__name__, command.callback))

    return "\n".join(lines)


def main() -> None:
    """Generate and write CLI reference documentation."""
    output_path = Path(__file__).parent.parent / "docs" / "reference" / "cli-commands.md"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    output_path.write_text(generate_cli_reference())
    print(f"Generated CLI reference at {output_path}")


if __name__ == "__main__":
    main()
