"""Balance sheet consistency checks.

A balance sheet payload looks like::

    {
        "capital_assets": {"accounts": [...], "net_book_value": 1000},
        "current_assets": {"accounts": [{"nominal_code": "681", "total_debit_value": 500}]},
        "current_liabilities": {"accounts": [{"nominal_code": "814", "total_debit_value": -200}]},
        "total_assets": 1300,
        "owners_equity": {"accounts": [...], "retained_profit": -300},
        "total_owners_equity": -1300,
    }

Liabilities and equity carry negative debit values, so a consistent sheet
has owners' equity equal to the negated total assets.
"""

from dataclasses import dataclass
from typing import Any

from freeagent.domain.models import Money, to_money


@dataclass(frozen=True)
class BalanceSheetTotals:
    """Totals recomputed from the account lines of a balance sheet."""

    net_book_value: Money
    current_assets: Money
    current_liabilities: Money
    total_assets: Money
    owners_equity_accounts: Money
    retained_profit: Money | None
    total_owners_equity: Money


def _section(sheet: dict[str, Any], name: str) -> dict[str, Any]:
    section = sheet.get(name)
    return section if isinstance(section, dict) else {}


def sum_debit_values(section: dict[str, Any]) -> Money:
    """Sum ``total_debit_value`` over a section's accounts."""
    accounts = section.get("accounts") or []
    return sum((to_money(account.get("total_debit_value")) for account in accounts), to_money(0))


def compute_totals(sheet: dict[str, Any]) -> BalanceSheetTotals:
    capital_assets = _section(sheet, "capital_assets")
    owners_equity = _section(sheet, "owners_equity")
    retained = owners_equity.get("retained_profit")

    return BalanceSheetTotals(
        net_book_value=to_money(capital_assets.get("net_book_value")),
        current_assets=sum_debit_values(_section(sheet, "current_assets")),
        current_liabilities=sum_debit_values(_section(sheet, "current_liabilities")),
        total_assets=to_money(sheet.get("total_assets")),
        owners_equity_accounts=sum_debit_values(owners_equity),
        retained_profit=to_money(retained) if retained is not None else None,
        total_owners_equity=to_money(sheet.get("total_owners_equity")),
    )


def check_balance_sheet(sheet: dict[str, Any]) -> list[str]:
    """Check that a balance sheet's totals agree with its account lines.

    Args:
        sheet: Decoded ``balance_sheet`` object.

    Returns:
        Descriptions of each failed check. Empty when consistent.
    """
    totals = compute_totals(sheet)
    failures: list[str] = []

    expected_assets = totals.net_book_value + totals.current_assets + totals.current_liabilities
    if totals.total_assets != expected_assets:
        failures.append(
            f"total_assets is {totals.total_assets} but net book value plus current assets "
            f"and liabilities is {expected_assets}"
        )

    if totals.total_owners_equity != -totals.total_assets:
        failures.append(
            f"total_owners_equity is {totals.total_owners_equity}, expected {-totals.total_assets}"
        )

    if totals.retained_profit is not None:
        expected_equity = totals.owners_equity_accounts + totals.retained_profit
        if totals.total_owners_equity != expected_equity:
            failures.append(
                f"total_owners_equity is {totals.total_owners_equity} but equity accounts "
                f"plus retained profit is {expected_equity}"
            )

    return failures
