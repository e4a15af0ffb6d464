"""Accounting report commands."""

import sys
from datetime import date
from typing import Any

from rich.table import Table

from freeagent.commands.common import console, format_amount, handle_errors, open_api, print_json
from freeagent.dates import default_period, parse_date
from freeagent.domain.balance_sheet import check_balance_sheet, compute_totals
from freeagent.domain.models import AccountingPeriod
from freeagent.domain.trial_balance import check_trial_balance, summarize, total


def compute_report_period(from_date: str | None, to_date: str | None, today: date | None = None) -> AccountingPeriod:
    """Resolve --from/--to options, defaulting to the current month.

    Raises:
        ValueError: If a date is malformed or the range is reversed.
    """
    fallback = default_period(today or date.today())
    start = parse_date(from_date) if from_date else fallback.start
    end = parse_date(to_date) if to_date else fallback.end
    return AccountingPeriod(start, end)


def trial_balance_command(profile: str, from_date: str | None, to_date: str | None, as_json: bool = False) -> None:
    """Show the trial balance summary for a period."""
    with handle_errors():
        period = compute_report_period(from_date, to_date)
        entries = open_api(profile).reports.trial_balance(period)

    if as_json:
        print_json(entries)
        return

    table = Table(title=f"Trial balance {period.start} to {period.end}")
    table.add_column("Code", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Total", justify="right")
    for entry in entries:
        table.add_row(
            str(entry.get("display_nominal_code") or entry.get("nominal_code", "")),
            str(entry.get("name", "")),
            format_amount(entry.get("total")),
        )
    console.print(table)

    groups = Table(title="By category group")
    groups.add_column("Group", style="magenta")
    groups.add_column("Entries", justify="right")
    groups.add_column("Total", justify="right")
    for group_total in summarize(entries):
        label = group_total.group.value if group_total.group else "other"
        groups.add_row(label, str(group_total.count), format_amount(group_total.total))
    console.print(groups)

    problem = check_trial_balance(entries)
    if problem:
        console.print(f"[red]{problem}[/red]")
    else:
        console.print(f"[green]✓[/green] Balanced ({format_amount(total(entries))})")


def render_section(title: str, section: dict[str, Any] | None) -> None:
    accounts = (section or {}).get("accounts") or []
    if not accounts:
        return
    console.print(f"\n[bold]{title}[/bold]")
    for account in accounts:
        console.print(
            f"  {account.get('nominal_code', ''):>6} {account.get('name', ''):40} "
            f"{format_amount(account.get('total_debit_value')):>14}"
        )


def balance_sheet_command(profile: str, as_at: str | None, check: bool = False, as_json: bool = False) -> None:
    """Show the balance sheet, optionally checking that its totals add up."""
    with handle_errors():
        as_at_date = parse_date(as_at) if as_at else None
        sheet = open_api(profile).reports.balance_sheet(as_at_date)

    if as_json:
        print_json(sheet)
    else:
        totals = compute_totals(sheet)
        heading = sheet.get("as_at_date") or as_at or "today"
        console.print(f"[bold cyan]Balance sheet as at {heading}[/bold cyan]")
        console.print(f"\nCapital assets (net book value): {format_amount(totals.net_book_value)}")
        render_section("Current assets", sheet.get("current_assets"))
        render_section("Current liabilities", sheet.get("current_liabilities"))
        console.print(f"\n[bold]Total assets:[/bold] {format_amount(totals.total_assets)}")
        render_section("Owners' equity", sheet.get("owners_equity"))
        if totals.retained_profit is not None:
            console.print(f"  {'':>6} {'Retained profit':40} {format_amount(totals.retained_profit):>14}")
        console.print(f"\n[bold]Total owners' equity:[/bold] {format_amount(totals.total_owners_equity)}")

    if check:
        failures = check_balance_sheet(sheet)
        if failures:
            console.print("\n[red]Balance sheet is inconsistent:[/red]", style="bold")
            for failure in failures:
                console.print(f"  • {failure}")
            sys.exit(1)
        console.print("\n[green]✓[/green] Balance sheet totals are consistent")


def profit_and_loss_command(profile: str, from_date: str | None, to_date: str | None, as_json: bool = False) -> None:
    """Show the profit and loss summary for a period."""
    with handle_errors():
        period = compute_report_period(from_date, to_date)
        summary = open_api(profile).reports.profit_and_loss(period)

    if as_json:
        print_json(summary)
        return

    console.print(f"[bold cyan]Profit and loss {period.start} to {period.end}[/bold cyan]\n")
    for key in ("income", "expenses", "operating_profit", "retained_profit", "retained_profit_brought_forward"):
        if key in summary:
            label = key.replace("_", " ").capitalize()
            console.print(f"  {label:35} {format_amount(summary[key]):>14}")

    for deduction in summary.get("less") or []:
        console.print(f"  less {deduction.get('title', ''):30} {format_amount(deduction.get('total')):>14}")


def cashflow_command(profile: str, from_date: str, to_date: str, as_json: bool = False) -> None:
    """Show incoming and outgoing cash for a period."""
    with handle_errors():
        period = AccountingPeriod(parse_date(from_date), parse_date(to_date))
        cashflow = open_api(profile).reports.cashflow(period)

    if as_json:
        print_json(cashflow)
        return

    table = Table(title=f"Cashflow {period.start} to {period.end}")
    table.add_column("Month", style="cyan")
    table.add_column("Incoming", justify="right")
    table.add_column("Outgoing", justify="right")

    incoming = {row.get("month"): row.get("total") for row in (cashflow.get("incoming") or {}).get("months") or []}
    outgoing = {row.get("month"): row.get("total") for row in (cashflow.get("outgoing") or {}).get("months") or []}
    for month in sorted(set(incoming) | set(outgoing), key=str):
        table.add_row(str(month), format_amount(incoming.get(month)), format_amount(outgoing.get(month)))
    console.print(table)

    console.print(f"\n[bold]Balance:[/bold] {format_amount(cashflow.get('balance'))}")
